"""Average reward of a consensus block, in ETH.

The daily chart averages rewards at the source. Coarser tiers are weighted by block counts:
weekly and monthly from the daily values and `newBlocks`, yearly from the monthly values and
`newBlocksMonthly`.
"""

from decimal import Decimal

from charts.batching import BATCH_30_DAYS, BATCH_30_WEEKS, BATCH_30_YEARS, BATCH_36_MONTHS
from charts.chart import ChartDefinition
from charts.lines.new_blocks import NEW_BLOCKS, NEW_BLOCKS_MONTHLY
from charts.models import ChartMetadata, ChartType
from charts.remote import NullPolicy, RangeQuery, RemoteSource
from charts.resolutions import Resolution
from charts.stages import Format, Parse, WeightedAverage

ETH = 1_000_000_000_000_000_000

AVERAGE_BLOCK_REWARDS_QUERY = RangeQuery(
    sql="""
        SELECT
            DATE(blocks.timestamp) AS date,
            AVG(block_rewards.reward) / $1 AS value
        FROM block_rewards
        JOIN blocks ON block_rewards.block_hash = blocks.hash
        WHERE
            blocks.timestamp != to_timestamp(0) AND
            blocks.consensus = true {filter}
        GROUP BY date
        ORDER BY date
    """,
    filter_column="blocks.timestamp",
    params=(Decimal(ETH),),
)

AVERAGE_BLOCK_REWARDS = ChartDefinition(
    metadata=ChartMetadata("averageBlockRewards", Resolution.DAY, ChartType.LINE),
    # Days with blocks but no recorded rewards count as a zero reward
    pipeline=Format(RemoteSource(AVERAGE_BLOCK_REWARDS_QUERY, NullPolicy.ZERO)),
    batch=BATCH_30_DAYS,
)

AVERAGE_BLOCK_REWARDS_WEEKLY = ChartDefinition(
    metadata=ChartMetadata("averageBlockRewardsWeekly", Resolution.WEEK, ChartType.LINE),
    pipeline=Format(
        WeightedAverage(
            Parse(AVERAGE_BLOCK_REWARDS.name), Parse(NEW_BLOCKS.name), Resolution.WEEK
        )
    ),
    batch=BATCH_30_WEEKS,
)

AVERAGE_BLOCK_REWARDS_MONTHLY = ChartDefinition(
    metadata=ChartMetadata("averageBlockRewardsMonthly", Resolution.MONTH, ChartType.LINE),
    pipeline=Format(
        WeightedAverage(
            Parse(AVERAGE_BLOCK_REWARDS.name), Parse(NEW_BLOCKS.name), Resolution.MONTH
        )
    ),
    batch=BATCH_36_MONTHS,
)

AVERAGE_BLOCK_REWARDS_YEARLY = ChartDefinition(
    metadata=ChartMetadata("averageBlockRewardsYearly", Resolution.YEAR, ChartType.LINE),
    pipeline=Format(
        WeightedAverage(
            Parse(AVERAGE_BLOCK_REWARDS_MONTHLY.name),
            Parse(NEW_BLOCKS_MONTHLY.name),
            Resolution.YEAR,
            fine_resolution=Resolution.MONTH,
        )
    ),
    batch=BATCH_30_YEARS,
)
