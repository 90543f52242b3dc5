"""
Body-stress (illness) detection.

Evaluates up to six physiological signals for one day against personal
baselines, over a 7-day window:
- HRV drop (below -15%) and HRV spike (above +100%, parasympathetic overdrive)
- Elevated resting HR (+5% or more)
- Sleep disruption (rule is a product setting, see SleepDisruptionRule)
- Respiratory rate change (beyond +/-10%)
- Activity drop (steps, else training volume, below -30%)

Each signal adds a fixed confidence increment (an HRV spike weighs most, so
a spike with one corroborating signal is already high severity); a sustained
multi-day trend adds a flat bonus. An indicator is only reported with at
least 50 confidence and two concurrent signals.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from ..baselines import BaselineTracker, percent_change
from ..config import EngineSettings, get_settings
from ..models.enums import IllnessSeverity, IllnessSignalType, Metric, SleepDisruptionRule
from ..models.scores import IllnessIndicator, IllnessSignal


logger = logging.getLogger(__name__)


SIGNAL_CONFIDENCE: Dict[IllnessSignalType, float] = {
    IllnessSignalType.HRV_SPIKE: 55.0,
    IllnessSignalType.HRV_DROP: 25.0,
    IllnessSignalType.ELEVATED_RHR: 25.0,
    IllnessSignalType.RESPIRATORY_CHANGE: 20.0,
    IllnessSignalType.SLEEP_DISRUPTION: 20.0,
    IllnessSignalType.ACTIVITY_DROP: 10.0,
}

TREND_BONUS = 10.0
TREND_CONSISTENCY = 0.7

FAIR_BAND = (60.0, 84.0)

WINDOW_METRICS = (
    Metric.HRV,
    Metric.RESTING_HR,
    Metric.SLEEP_SCORE,
    Metric.RESPIRATORY_RATE,
    Metric.STEP_COUNT,
    Metric.TRAINING_VOLUME,
)

_SIGNAL_CONTEXT = {
    IllnessSignalType.HRV_SPIKE: "Elevated HRV detected. ",
    IllnessSignalType.HRV_DROP: "Suppressed HRV detected. ",
    IllnessSignalType.ELEVATED_RHR: "Elevated resting heart rate detected. ",
    IllnessSignalType.SLEEP_DISRUPTION: "Sleep disruption detected. ",
    IllnessSignalType.RESPIRATORY_CHANGE: "Respiratory changes detected. ",
    IllnessSignalType.ACTIVITY_DROP: "Activity levels reduced. ",
}

_SEVERITY_ADVICE = {
    IllnessSeverity.LOW: "Monitor your recovery metrics. Consider taking it easy if symptoms persist.",
    IllnessSeverity.MODERATE: "Your body is showing stress signals. Prioritize rest and recovery today.",
    IllnessSeverity.HIGH: "Rest is strongly recommended. Consult a healthcare provider if you feel unwell.",
}


def determine_severity(confidence: float) -> IllnessSeverity:
    if confidence >= 80:
        return IllnessSeverity.HIGH
    elif confidence >= 66:
        return IllnessSeverity.MODERATE
    return IllnessSeverity.LOW


def generate_recommendation(severity: IllnessSeverity, signals: Sequence[IllnessSignal]) -> str:
    """Advice keyed on severity, prefixed by the primary (largest deviation) signal."""
    context = ""
    if signals:
        primary = max(signals, key=lambda s: abs(s.deviation_pct))
        context = _SIGNAL_CONTEXT[primary.signal_type]
    return context + _SEVERITY_ADVICE[severity]


def trend_consistency(values: Sequence[Optional[float]], decreasing: bool) -> float:
    """
    Fraction of consecutive day pairs moving in the expected direction.

    Gaps break a pair. Returns 0.0 with fewer than two pairs.
    """
    pairs = [
        (a, b) for a, b in zip(values, values[1:])
        if a is not None and b is not None
    ]
    if len(pairs) < 2:
        return 0.0
    moving = sum(1 for a, b in pairs if (b < a if decreasing else b > a))
    return moving / len(pairs)


class IllnessDetector:
    """Stateless multi-signal detector. Output is transient and recomputed each pass."""

    def __init__(self, settings: Optional[EngineSettings] = None) -> None:
        self.settings = settings or get_settings()

    def _signal(
        self,
        signal_type: IllnessSignalType,
        value: float,
        baseline: float,
        deviation: float,
    ) -> IllnessSignal:
        return IllnessSignal(
            signal_type=signal_type,
            deviation_pct=round(deviation, 1),
            value=value,
            baseline=baseline,
        )

    def _sleep_disrupted(self, score: float, deviation: float) -> bool:
        s = self.settings
        if s.sleep_disruption_rule == SleepDisruptionRule.FAIR_BAND_DROP:
            return FAIR_BAND[0] <= score <= FAIR_BAND[1] and deviation < 0
        return deviation < s.illness_sleep_drop_pct

    def evaluate_signals(
        self,
        today: Dict[Metric, Optional[float]],
        baselines: Dict[Metric, Optional[float]],
    ) -> List[IllnessSignal]:
        """All signals present for today's values vs baselines."""
        s = self.settings
        signals: List[IllnessSignal] = []

        def deviation_for(metric: Metric) -> Optional[float]:
            return percent_change(today.get(metric), baselines.get(metric))

        hrv_dev = deviation_for(Metric.HRV)
        if hrv_dev is not None:
            if hrv_dev > s.illness_hrv_spike_pct:
                signals.append(self._signal(
                    IllnessSignalType.HRV_SPIKE, today[Metric.HRV], baselines[Metric.HRV], hrv_dev
                ))
            elif hrv_dev < s.illness_hrv_drop_pct:
                signals.append(self._signal(
                    IllnessSignalType.HRV_DROP, today[Metric.HRV], baselines[Metric.HRV], hrv_dev
                ))

        rhr_dev = deviation_for(Metric.RESTING_HR)
        if rhr_dev is not None and rhr_dev >= s.illness_rhr_elevation_pct:
            signals.append(self._signal(
                IllnessSignalType.ELEVATED_RHR,
                today[Metric.RESTING_HR], baselines[Metric.RESTING_HR], rhr_dev,
            ))

        sleep_dev = deviation_for(Metric.SLEEP_SCORE)
        if sleep_dev is not None and self._sleep_disrupted(today[Metric.SLEEP_SCORE], sleep_dev):
            signals.append(self._signal(
                IllnessSignalType.SLEEP_DISRUPTION,
                today[Metric.SLEEP_SCORE], baselines[Metric.SLEEP_SCORE], sleep_dev,
            ))

        resp_dev = deviation_for(Metric.RESPIRATORY_RATE)
        if resp_dev is not None and abs(resp_dev) > s.illness_respiratory_change_pct:
            signals.append(self._signal(
                IllnessSignalType.RESPIRATORY_CHANGE,
                today[Metric.RESPIRATORY_RATE], baselines[Metric.RESPIRATORY_RATE], resp_dev,
            ))

        activity_metric = Metric.STEP_COUNT
        activity_dev = deviation_for(Metric.STEP_COUNT)
        if activity_dev is None:
            activity_metric = Metric.TRAINING_VOLUME
            activity_dev = deviation_for(Metric.TRAINING_VOLUME)
        if activity_dev is not None and activity_dev < s.illness_activity_drop_pct:
            signals.append(self._signal(
                IllnessSignalType.ACTIVITY_DROP,
                today[activity_metric], baselines[activity_metric], activity_dev,
            ))

        return signals

    def detect(
        self,
        day: date,
        window: Dict[Metric, List[Optional[float]]],
        baselines: Dict[Metric, Optional[float]],
    ) -> Optional[IllnessIndicator]:
        """
        Evaluate one day.

        Args:
            day: Date being evaluated
            window: Daily values per metric, oldest first, ending on `day`
                (None for days without data)
            baselines: Rolling baseline per metric as of the day before

        Returns:
            IllnessIndicator, or None for "no indicator"
        """
        s = self.settings
        span = max((len(v) for v in window.values()), default=0)
        days_with_data = sum(
            1 for i in range(span)
            if any(
                len(window.get(m, [])) > i and window[m][i] is not None
                for m in WINDOW_METRICS
            )
        )
        if days_with_data < s.illness_min_days:
            logger.debug(f"Illness check {day}: only {days_with_data} days of data")
            return None

        today = {m: (values[-1] if values else None) for m, values in window.items()}
        signals = self.evaluate_signals(today, baselines)
        if not signals:
            return None

        confidence = sum(SIGNAL_CONFIDENCE[sig.signal_type] for sig in signals)
        hrv_trend = trend_consistency(window.get(Metric.HRV, []), decreasing=True)
        rhr_trend = trend_consistency(window.get(Metric.RESTING_HR, []), decreasing=False)
        if hrv_trend > TREND_CONSISTENCY or rhr_trend > TREND_CONSISTENCY:
            confidence += TREND_BONUS
            logger.debug(f"Illness check {day}: sustained trend, confidence +{TREND_BONUS:.0f}")
        confidence = min(100.0, confidence)

        if confidence < s.illness_min_confidence or len(signals) < s.illness_min_signals:
            logger.debug(
                f"Illness check {day}: {len(signals)} signals, confidence {confidence:.0f}, below threshold"
            )
            return None

        severity = determine_severity(confidence)
        logger.info(
            f"Body stress detected on {day}: {severity.value} "
            f"({[sig.signal_type.value for sig in signals]}, confidence {confidence:.0f})"
        )
        return IllnessIndicator(
            date=day,
            signals=tuple(signals),
            confidence_score=confidence,
            severity=severity,
            recommendation=generate_recommendation(severity, signals),
        )

    def inputs_from_tracker(
        self,
        tracker: BaselineTracker,
        day: date,
    ) -> Tuple[Dict[Metric, List[Optional[float]]], Dict[Metric, Optional[float]]]:
        """Snapshot the 7-day window and the baselines as of the day before."""
        window = {
            m: tracker.history(m, day, self.settings.illness_window_days)
            for m in WINDOW_METRICS
        }
        baselines = {m: tracker.baseline_value(m, before=day) for m in WINDOW_METRICS}
        return window, baselines

    def detect_from_tracker(self, tracker: BaselineTracker, day: date) -> Optional[IllnessIndicator]:
        window, baselines = self.inputs_from_tracker(tracker, day)
        return self.detect(day, window, baselines)
