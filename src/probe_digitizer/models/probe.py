import uuid

from pydantic import BaseModel, Field, field_validator

from probe_digitizer import config

RGB = tuple[int, int, int]


def new_probe_id() -> str:
    return f"probe_{uuid.uuid4().hex[:10]}"


def parse_label_color(value: object) -> RGB:
    """Accept '#rrggbb', 'rrggbb' or a 3-sequence of 0-255 ints."""
    if isinstance(value, str):
        text = value.strip().lstrip("#")
        if len(text) != 6:
            raise ValueError(f"expected #rrggbb color, got {value!r}")
        try:
            return (int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))
        except ValueError as exc:
            raise ValueError(f"invalid hex color {value!r}") from exc
    if isinstance(value, (list, tuple)) and len(value) >= 3:
        rgb = tuple(int(c) for c in value[:3])
        if any(c < 0 or c > 255 for c in rgb):
            raise ValueError(f"color channel out of range: {value!r}")
        return rgb  # type: ignore[return-value]
    raise ValueError(f"unsupported color value: {value!r}")


class LabelSet(BaseModel):
    """Ordered curve labels, least-value curve first, with optional mask colors."""

    labels: list[str] = Field(default_factory=lambda: list(config.DEFAULT_LABELS))
    colors: dict[str, RGB] = {}

    @field_validator("labels", mode="before")
    @classmethod
    def _normalize_labels(cls, value: object) -> list[str]:
        if isinstance(value, str):
            value = value.split(",")
        seen: set[str] = set()
        out: list[str] = []
        for item in value or []:  # type: ignore[union-attr]
            text = str(item).strip()
            if not text or text in seen:
                continue
            seen.add(text)
            out.append(text)
        return out

    @field_validator("colors", mode="before")
    @classmethod
    def _parse_colors(cls, value: object) -> dict[str, RGB]:
        if not value:
            return {}
        return {str(k): parse_label_color(v) for k, v in dict(value).items()}  # type: ignore[arg-type]

    def index(self, label: str) -> int:
        try:
            return self.labels.index(label)
        except ValueError:
            return -1

    def __len__(self) -> int:
        return len(self.labels)


class Probe(BaseModel):
    id: str = Field(default_factory=new_probe_id)
    x_data: float
    pixel_x: float
    # Aligned with LabelSet.labels; None slot = no confident value.
    automatic_y: list[float | None] | None = None
    manual: dict[str, float] = {}
    # Per-probe overrides of the global detection settings
    sensitivity: float | None = None
    band_px: int | None = None
