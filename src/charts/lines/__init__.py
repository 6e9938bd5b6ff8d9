from charts.lines.average_block_rewards import (
    AVERAGE_BLOCK_REWARDS,
    AVERAGE_BLOCK_REWARDS_MONTHLY,
    AVERAGE_BLOCK_REWARDS_WEEKLY,
    AVERAGE_BLOCK_REWARDS_YEARLY,
)
from charts.lines.new_blocks import NEW_BLOCKS, NEW_BLOCKS_MONTHLY

ALL_CHARTS = (
    NEW_BLOCKS,
    NEW_BLOCKS_MONTHLY,
    AVERAGE_BLOCK_REWARDS,
    AVERAGE_BLOCK_REWARDS_WEEKLY,
    AVERAGE_BLOCK_REWARDS_MONTHLY,
    AVERAGE_BLOCK_REWARDS_YEARLY,
)
