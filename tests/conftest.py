import io
import threading

import pytest
import requests
from PIL import Image

from app.gradphoto.clients.base import BaseGenerator, GeneratorResult, ImageFound, NoImage
from app.gradphoto.models import GeneratedImage, SourceImage
from app.gradphoto.progress import ProgressTicker
from app.gradphoto.workflow import Workflow


def make_image(width=64, height=48, color=(30, 60, 90), fmt="PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


class FakeGenerator(BaseGenerator):
    """Scripted generator: each call pops the next outcome."""

    name = "fake"

    def __init__(self, *outcomes, gate: threading.Event = None):
        self.outcomes = list(outcomes) or ["image"]
        self.gate = gate
        self.payloads = []
        self.prompts = []

    def process_image(self, payload, prompt):
        self.payloads.append(payload)
        self.prompts.append(prompt)
        if self.gate is not None:
            self.gate.wait(timeout=5)

        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if outcome == "image":
            return GeneratorResult(ImageFound(GeneratedImage(make_image(128, 96), "image/png")))
        if outcome == "garbage":
            return GeneratorResult(ImageFound(GeneratedImage(b"not an image", "image/png")))
        if outcome == "none":
            return GeneratorResult(NoImage("only text came back"))
        if outcome == "network":
            raise requests.exceptions.ConnectionError("connection refused")
        if isinstance(outcome, GeneratedImage):
            return GeneratorResult(ImageFound(outcome))
        raise AssertionError(f"unknown outcome {outcome!r}")

    @property
    def calls(self):
        return len(self.payloads)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text="", content=b"", headers=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.content = content
        self.headers = headers or {}

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)


@pytest.fixture
def source():
    return SourceImage(data=make_image(), mime_type="image/png", filename="student.png")


@pytest.fixture
def make_workflow():
    created = []

    def factory(generator, **kwargs):
        kwargs.setdefault("default_caption", "Class of 2025")
        kwargs.setdefault("ticker", ProgressTicker(interval=0.05))
        wf = Workflow(generator, **kwargs)
        created.append(wf)
        return wf

    yield factory
    for wf in created:
        wf.close()
