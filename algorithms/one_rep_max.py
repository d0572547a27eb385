from typing import Iterable

import numpy as np


class OneRepMaxCalculator:
    """Estimate single-repetition maxima from weight and reps."""

    EPLEY_DIVISOR: float = 30.0
    BRZYCKI_A: float = 1.0278
    BRZYCKI_B: float = 0.0278
    # Brzycki's denominator reaches zero just above 36 reps.
    BRZYCKI_MAX_REPS: int = 36
    DEFAULT_REP_MAXES: tuple[int, ...] = (2, 3, 5, 10)

    @classmethod
    def calculate_one_rep_max(cls, weight: float, reps: int) -> float:
        """Return the Epley estimate ``weight * (1 + reps / 30)``."""
        if reps <= 0:
            return 0.0
        return weight * (1 + reps / cls.EPLEY_DIVISOR)

    @classmethod
    def calculate_one_rep_max_brzycki(cls, weight: float, reps: int) -> float:
        """Return the Brzycki estimate ``weight / (1.0278 - 0.0278 * reps)``.

        Rep counts outside ``1..BRZYCKI_MAX_REPS`` return ``0.0`` instead of
        an infinite or sign-flipped result.
        """
        if reps <= 0 or reps > cls.BRZYCKI_MAX_REPS:
            return 0.0
        return weight / (cls.BRZYCKI_A - cls.BRZYCKI_B * reps)

    @classmethod
    def calculate_weight_for_reps(cls, one_rep_max: float, target_reps: int) -> float:
        """Return the weight expected to be liftable for ``target_reps``."""
        if target_reps <= 0:
            return 0.0
        return one_rep_max / (1 + target_reps / cls.EPLEY_DIVISOR)

    @staticmethod
    def calculate_percentage(weight: float, one_rep_max: float) -> float:
        """Return ``weight`` as a percentage of ``one_rep_max``."""
        if one_rep_max <= 0:
            return 0.0
        return (weight / one_rep_max) * 100

    @classmethod
    def estimate(cls, weight: float, reps: int, formula: str = "epley") -> float:
        if formula == "epley":
            return cls.calculate_one_rep_max(weight, reps)
        if formula == "brzycki":
            return cls.calculate_one_rep_max_brzycki(weight, reps)
        raise ValueError(f"unknown formula: {formula}")

    @classmethod
    def rep_max_table(
        cls, one_rep_max: float, reps: Iterable[int] | None = None
    ) -> dict[int, float]:
        """Return estimated working weights keyed by rep count."""
        targets = cls.DEFAULT_REP_MAXES if reps is None else tuple(reps)
        return {
            int(r): round(cls.calculate_weight_for_reps(one_rep_max, int(r)), 1)
            for r in targets
        }

    @staticmethod
    def percentage_table(
        one_rep_max: float, start: int = 50, stop: int = 100, step: int = 5
    ) -> dict[int, float]:
        """Return weights for each percentage from ``start`` to ``stop`` inclusive."""
        if one_rep_max <= 0 or step <= 0 or start > stop:
            return {}
        pcts = np.arange(start, stop + step, step)
        pcts = pcts[pcts <= stop]
        return {int(p): round(float(one_rep_max * p / 100.0), 1) for p in pcts}
