"""Activity stream schemas.

Streams are ephemeral: they are computed on, never persisted.
"""

from pydantic import BaseModel, Field, model_validator


class StreamSample(BaseModel):
    """One timestamped sample from a parsed activity file."""

    timestamp: float = Field(description="Seconds since activity start")
    power: float | None = Field(default=None, ge=0, description="Watts")
    heart_rate: float | None = Field(default=None, ge=0, description="bpm")
    cadence: float | None = Field(default=None, ge=0)
    altitude: float | None = Field(default=None, description="Meters")
    speed: float | None = Field(default=None, ge=0, description="m/s")
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class ActivityStreams(BaseModel):
    """Ordered samples of a single activity."""

    samples: list[StreamSample] = Field(default_factory=list)

    @model_validator(mode="after")
    def _sort_samples(self) -> "ActivityStreams":
        self.samples.sort(key=lambda s: s.timestamp)
        return self

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def timestamps(self) -> list[float]:
        return [s.timestamp for s in self.samples]

    @property
    def span_seconds(self) -> float:
        """Elapsed time between first and last sample."""
        if len(self.samples) < 2:
            return 0.0
        return self.samples[-1].timestamp - self.samples[0].timestamp

    def has_signal(self, name: str) -> bool:
        """True if any sample carries a positive value for the signal."""
        return any((getattr(s, name) or 0) > 0 for s in self.samples)

    def series(self, name: str) -> list[float | None]:
        return [getattr(s, name) for s in self.samples]
