"""Curve value types handed to the analysis engine.

Only the two shapes the scheduler models need are represented:

  - ServiceCurve : rate-latency curve    β(t) = R · [t − T]⁺
  - ArrivalCurve : token-bucket curve    α(t) = b + r·t   (b = 0 for peak-rate)

The engine consumes them through their parameters; no min-plus algebra is
performed on these objects.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class ServiceCurve:
    """Rate-latency service curve.

    rate    — guaranteed service rate R, in bytes per second
    latency — latency T, in seconds
    """

    rate: float
    latency: float = 0.0

    def __repr__(self):
        return f"ServiceCurve(R={self.rate:.4f} B/s, T={self.latency:.6f} s)"


@dataclass(frozen=True)
class ArrivalCurve:
    """Affine arrival curve  α(t) = burst + rate·t.

    burst — bucket size b, in bytes (0 for a peak-rate curve)
    rate  — long-term rate r, in bytes per second

    Supports aggregation via  +  operator:
        (b_A + b_B,  r_A + r_B)
    """

    rate: float
    burst: float = 0.0

    @classmethod
    def token_bucket(cls, rate: float, bucket: float) -> "ArrivalCurve":
        return cls(rate=rate, burst=bucket)

    @classmethod
    def peak_rate(cls, rate: float) -> "ArrivalCurve":
        return cls(rate=rate, burst=0.0)

    def __add__(self, other: "ArrivalCurve") -> "ArrivalCurve":
        return ArrivalCurve(self.rate + other.rate, self.burst + other.burst)

    def with_burst(self, burst: float) -> "ArrivalCurve":
        return ArrivalCurve(self.rate, burst)

    def __repr__(self):
        return f"ArrivalCurve(b={self.burst:.2f} B, r={self.rate:.2f} B/s)"
