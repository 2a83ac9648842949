"""Captcha challenges rendered to PNG with Pillow."""

from __future__ import annotations

import base64
import io
import secrets
from dataclasses import dataclass, field
from functools import cached_property

from PIL import Image, ImageDraw, ImageFont

from markform.config import CaptchaConfig

_random = secrets.SystemRandom()


def generate_challenge(config: CaptchaConfig | None = None) -> CaptchaChallenge:
    """Create a challenge with a random value drawn from the configured alphabet."""
    config = config or CaptchaConfig()
    value = "".join(secrets.choice(config.alphabet) for _ in range(config.length))
    return CaptchaChallenge(value=value, config=config)


@dataclass(eq=False)
class CaptchaChallenge:
    """An expected value and the image that shows it.

    The image is drawn on first access and reused afterwards, so a form
    rendered twice shows the same picture for the same challenge.
    """

    value: str = field(repr=False)
    config: CaptchaConfig = field(default_factory=CaptchaConfig, repr=False)

    @cached_property
    def image(self) -> bytes:
        return render_image(self.value, self.config)

    @property
    def data_uri(self) -> str:
        return "data:image/png;base64," + base64.b64encode(self.image).decode("ascii")


def render_image(text: str, config: CaptchaConfig) -> bytes:
    """Draw ``text`` over a noisy background and return PNG bytes."""
    width, height = config.width, config.height
    img = Image.new("RGB", (width, height), (245, 245, 245))
    draw = ImageDraw.Draw(img)

    for _ in range(config.noise_lines):
        start = (_random.randrange(width), _random.randrange(height))
        end = (_random.randrange(width), _random.randrange(height))
        draw.line([start, end], fill=_random_color(120, 200), width=1)

    font = ImageFont.load_default()
    step = max(width // (len(text) + 1), 1)
    for index, char in enumerate(text):
        x = step * index + step // 2
        y = _random.randrange(max(height // 2 - 6, 1))
        draw.text((x, y), char, fill=_random_color(0, 90), font=font)

    buf = io.BytesIO()
    img.save(buf, format="PNG", optimize=True)
    return buf.getvalue()


def _random_color(low: int, high: int) -> tuple[int, int, int]:
    return tuple(_random.randrange(low, high) for _ in range(3))
