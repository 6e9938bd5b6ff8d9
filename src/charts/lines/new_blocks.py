"""Number of consensus blocks per day, and per month.

Besides being displayed, these counters weight the rollups of per-block averages.
"""

from charts.batching import BATCH_30_DAYS, BATCH_36_MONTHS
from charts.chart import ChartDefinition
from charts.codec import DECIMAL
from charts.models import ChartMetadata, ChartType
from charts.remote import NullPolicy, RangeQuery, RemoteSource
from charts.resolutions import Resolution
from charts.stages import Format, Parse, Sum

NEW_BLOCKS_QUERY = RangeQuery(
    sql="""
        SELECT
            DATE(blocks.timestamp) AS date,
            COUNT(*) AS value
        FROM blocks
        WHERE
            blocks.timestamp != to_timestamp(0) AND
            blocks.consensus = true {filter}
        GROUP BY date
        ORDER BY date
    """,
    filter_column="blocks.timestamp",
)

NEW_BLOCKS = ChartDefinition(
    metadata=ChartMetadata("newBlocks", Resolution.DAY, ChartType.COUNTER),
    pipeline=Format(RemoteSource(NEW_BLOCKS_QUERY, NullPolicy.ZERO), codec=DECIMAL),
    batch=BATCH_30_DAYS,
)

NEW_BLOCKS_MONTHLY = ChartDefinition(
    metadata=ChartMetadata("newBlocksMonthly", Resolution.MONTH, ChartType.COUNTER),
    pipeline=Format(Sum(Parse("newBlocks", codec=DECIMAL), Resolution.MONTH), codec=DECIMAL),
    batch=BATCH_36_MONTHS,
)
