"""
Enumeration definitions for the Coverage Compass backend.

All enums inherit from both `str` and `Enum` so they serialize as plain
strings in pydantic models and JSON responses.
"""

from enum import Enum
from typing import Dict, Tuple


class Dimension(str, Enum):
    """
    Categorical slicing of the monthly extracts.

    `All` is the unsliced total; every other member names one of the five
    category-sliced extracts delivered per market/month.
    """
    ALL = "All"
    CAMPAIGN_TYPE = "CampaignType"
    CHANNEL_TYPE = "ChannelType"
    CHANNEL_NAME = "ChannelName"
    PHASE = "Phase"
    MODEL = "Model"

    @property
    def label(self) -> str:
        """Human-readable name used in recommendation messages."""
        return DIMENSION_LABELS[self]

    @property
    def field_name(self) -> str:
        """Row attribute holding this dimension's categorical value."""
        return DIMENSION_FIELDS[self]


DIMENSION_LABELS: Dict[Dimension, str] = {
    Dimension.ALL: "All",
    Dimension.CAMPAIGN_TYPE: "Campaign Type",
    Dimension.CHANNEL_TYPE: "Channel Type",
    Dimension.CHANNEL_NAME: "Channel Name",
    Dimension.PHASE: "Phase",
    Dimension.MODEL: "Model",
}

# The All extract has no categorical column of its own
DIMENSION_FIELDS: Dict[Dimension, str] = {
    Dimension.ALL: "",
    Dimension.CAMPAIGN_TYPE: "campaignType",
    Dimension.CHANNEL_TYPE: "channelType",
    Dimension.CHANNEL_NAME: "channelName",
    Dimension.PHASE: "phase",
    Dimension.MODEL: "model",
}

# Scoring order of the five sliced dimensions
SCORED_DIMENSIONS: Tuple[Dimension, ...] = (
    Dimension.CHANNEL_NAME,
    Dimension.CHANNEL_TYPE,
    Dimension.CAMPAIGN_TYPE,
    Dimension.MODEL,
    Dimension.PHASE,
)


class CoreMetric(str, Enum):
    """
    The five numeric metrics reconciled between the All and sliced extracts.

    Member order is the fixed metric order used for scoring and for
    recommendation ordering.
    """
    MEDIA_COST = "mediaCost"
    IMPRESSIONS = "impressions"
    CLICKS = "clicks"
    IV = "iv"
    NVWR = "nvwr"

    @property
    def label(self) -> str:
        """Column header used by the Datorama extracts."""
        return METRIC_LABELS[self]

    @property
    def weight(self) -> float:
        """Weight of this metric in the composite dimension score."""
        return METRIC_WEIGHTS[self]


METRIC_LABELS: Dict[CoreMetric, str] = {
    CoreMetric.MEDIA_COST: "Media Cost",
    CoreMetric.IMPRESSIONS: "Impressions",
    CoreMetric.CLICKS: "Clicks",
    CoreMetric.IV: "IV",
    CoreMetric.NVWR: "NVWR",
}

METRIC_WEIGHTS: Dict[CoreMetric, float] = {
    CoreMetric.MEDIA_COST: 0.25,
    CoreMetric.IMPRESSIONS: 0.20,
    CoreMetric.CLICKS: 0.15,
    CoreMetric.IV: 0.20,
    CoreMetric.NVWR: 0.20,
}


class GapSeverity(str, Enum):
    """Severity of a single metric's coverage gap."""
    OK = "OK"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class Priority(str, Enum):
    """Recommendation priority."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"


class RecommendationType(str, Enum):
    """
    Kind of recommendation emitted by the quality scorer.

    - CRITICAL / WARNING: summary items for a dimension
    - METRIC_GAP: one metric with a gap above 5%
    - NO_DATA: nothing to score for the dimension
    - PREVENTIVE: process improvements derived from the composite report
    """
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    METRIC_GAP = "METRIC_GAP"
    NO_DATA = "NO_DATA"
    PREVENTIVE = "PREVENTIVE"


class ComplianceStatusLevel(str, Enum):
    """Traffic-light bucket for mapping compliance."""
    GREEN = "Green"
    YELLOW = "Yellow"
    ORANGE = "Orange"
    RED = "Red"


class MomDirection(str, Enum):
    """Direction of a month-over-month compliance change."""
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class MappedField(str, Enum):
    """Categorical fields tracked by the mapping-compliance analyzer."""
    MODEL = "model"
    PHASE = "phase"
    CHANNEL_TYPE = "channelType"
    CHANNEL_NAME = "channelName"
    CAMPAIGN_TYPE = "campaignType"


# Field checked for rows of each sliced dimension
DIMENSION_MAPPED_FIELD: Dict[Dimension, MappedField] = {
    Dimension.MODEL: MappedField.MODEL,
    Dimension.PHASE: MappedField.PHASE,
    Dimension.CHANNEL_TYPE: MappedField.CHANNEL_TYPE,
    Dimension.CHANNEL_NAME: MappedField.CHANNEL_NAME,
    Dimension.CAMPAIGN_TYPE: MappedField.CAMPAIGN_TYPE,
}


class HistoryKind(str, Enum):
    """The two snapshot tables kept for trend and MoM computation."""
    COMPLIANCE = "compliance"
    DIMENSION_COVERAGE = "dimension-coverage"
