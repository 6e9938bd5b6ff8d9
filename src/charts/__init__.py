"""Charts

Incremental time-series charts over a blocks database, with weighted resolution rollups.
"""

from .chart import Chart, ChartDefinition
from .graph import ChartGraph
from .resolutions import Resolution

__version__ = "1.0.0"

__all__ = ["Chart", "ChartDefinition", "ChartGraph", "Resolution"]
