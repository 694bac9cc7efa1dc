"""Momentum classification of the trailing funding APR window.

Looks at consecutive period-over-period changes: mostly falling APR with a
meaningful average drop is DECLINING, mostly rising APR with a meaningful
average gain is RISING, anything else is STABLE.
"""

from collections.abc import Sequence

from arbsim.config import SignalSettings
from arbsim.signals.models import MomentumSignal, MomentumTrend


def analyze_momentum(
    aprs: Sequence[float],
    settings: SignalSettings | None = None,
) -> MomentumSignal:
    """Classify APR momentum.

    Args:
        aprs: Trailing APR values, oldest first.
        settings: Thresholds (min declines, avg decline, strength scale).

    Returns:
        MomentumSignal. Fewer than two values classify as STABLE.
    """
    s = settings or SignalSettings()
    declines = [prev - curr for prev, curr in zip(aprs, aprs[1:])]
    if not declines:
        return MomentumSignal(
            trend=MomentumTrend.STABLE,
            strength=s.momentum_stable_strength,
            avg_decline=0.0,
            decline_count=0,
        )

    decline_count = sum(1 for d in declines if d > 0)
    avg_decline = sum(declines) / len(declines)

    if (
        decline_count >= s.momentum_min_declines
        and avg_decline > s.momentum_decline_threshold
    ):
        trend = MomentumTrend.DECLINING
        strength = min(avg_decline / s.momentum_strength_scale, 1.0)
    elif (
        decline_count <= s.momentum_max_declines_for_rise
        and avg_decline < -s.momentum_decline_threshold
    ):
        trend = MomentumTrend.RISING
        strength = min(abs(avg_decline) / s.momentum_strength_scale, 1.0)
    else:
        trend = MomentumTrend.STABLE
        strength = s.momentum_stable_strength

    return MomentumSignal(
        trend=trend,
        strength=strength,
        avg_decline=avg_decline,
        decline_count=decline_count,
    )
