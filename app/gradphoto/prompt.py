"""
Editing instruction sent to the image service.
"""

BASE_INSTRUCTION = (
    "Edit this photo of a student. Add a black graduation gown with a blue sash. "
    "Also add a black graduation cap (mortarboard) on the student's head. "
    "The style must be realistic and keep the original face unchanged. "
    "VERY IMPORTANT: replace the original background with a dark, elegant staircase "
    "with a sophisticated look, like that of a university or formal building."
)

CAPTION_INSTRUCTION = (
    ' At the bottom of the image, write the following text exactly as given: "{caption}". '
    "Pay close attention not to make any typing mistakes. "
    "The text must use an elegant, legible font in a color that contrasts well "
    "with the background (white or yellow)."
)

CLOSING_INSTRUCTION = " Return only the finished image."


def build_prompt(caption: str = "") -> str:
    """Build the editing instruction, asking for the caption only when one is given."""
    prompt = BASE_INSTRUCTION
    if caption:
        prompt += CAPTION_INSTRUCTION.format(caption=caption)
    return prompt + CLOSING_INSTRUCTION
