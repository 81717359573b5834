"""
Hardfork table for block header encoding.

Each hardfork that changed the header appended fields to it. The table maps
a chain name to the blocks (or, from Shanghai on, the timestamps) at which each
header variant activated, so the header codec can pick the exact field list
a given block was hashed with.
"""

from enum import Enum
from typing import Dict, Mapping, Optional, Sequence, Tuple

LEGACY_FIELDS: Tuple[str, ...] = (
    "parentHash",
    "sha3Uncles",
    "miner",
    "stateRoot",
    "transactionsRoot",
    "receiptsRoot",
    "logsBloom",
    "difficulty",
    "number",
    "gasLimit",
    "gasUsed",
    "timestamp",
    "extraData",
    "mixHash",
    "nonce",
)
LONDON_FIELDS = LEGACY_FIELDS + ("baseFeePerGas",)  # EIP-1559
SHANGHAI_FIELDS = LONDON_FIELDS + ("withdrawalsRoot",)  # EIP-4895
CANCUN_FIELDS = SHANGHAI_FIELDS + (
    "blobGasUsed",
    "excessBlobGas",
    "parentBeaconBlockRoot",
)
PRAGUE_FIELDS = CANCUN_FIELDS + ("requestsHash",)  # EIP-7685


class HeaderVariant(Enum):
    """Header field sets, oldest first; each extends the previous one."""

    LEGACY = ("legacy", LEGACY_FIELDS)
    LONDON = ("london", LONDON_FIELDS)
    SHANGHAI = ("shanghai", SHANGHAI_FIELDS)
    CANCUN = ("cancun", CANCUN_FIELDS)
    PRAGUE = ("prague", PRAGUE_FIELDS)

    def __init__(self, label: str, fields: Tuple[str, ...]):
        self.label = label
        self.fields = fields


NEWEST_VARIANT = HeaderVariant.PRAGUE

ActivationTable = Mapping[str, Sequence[Tuple[int, HeaderVariant]]]


def _sorted_table(table: ActivationTable) -> Dict[str, Tuple[Tuple[int, HeaderVariant], ...]]:
    return {
        chain.lower(): tuple(sorted(entries, key=lambda entry: entry[0]))
        for chain, entries in table.items()
    }


def _activated(
    entries: Sequence[Tuple[int, HeaderVariant]],
    point: int,
    variant: HeaderVariant,
) -> HeaderVariant:
    for activation, candidate in entries:
        if point < activation:
            break
        variant = candidate
    return variant


class HardforkConfig:
    """
    Ordered activation tables: chain name -> [(activation point, variant)].

    Forks up to London activated at a block number; Shanghai and later
    activate at a block timestamp, so chains can carry a second table keyed
    by timestamp that overrides the block table. Lookups pick the variant
    with the highest activation point not above the requested one. Chains
    missing from both tables resolve to the newest variant.
    """

    def __init__(
        self,
        table: ActivationTable,
        aliases: Optional[Mapping[str, str]] = None,
        default: HeaderVariant = NEWEST_VARIANT,
        timestamps: Optional[ActivationTable] = None,
    ):
        self._table = _sorted_table(table)
        self._timestamps = _sorted_table(timestamps or {})
        self._aliases = {k.lower(): v.lower() for k, v in (aliases or {}).items()}
        self.default = default

    def chains(self) -> Tuple[str, ...]:
        return tuple(dict.fromkeys(tuple(self._table) + tuple(self._timestamps)))

    def resolve(
        self, chain_name: str, block_number: int, timestamp: Optional[int] = None
    ) -> HeaderVariant:
        """
        Raises:
            ValueError: The chain activates forks by timestamp and none was given.
        """
        chain = chain_name.lower()
        chain = self._aliases.get(chain, chain)
        by_block = self._table.get(chain)
        by_time = self._timestamps.get(chain)
        if by_block is None and by_time is None:
            return self.default

        variant = _activated(by_block or (), block_number, self.default)
        if by_time:
            if timestamp is None:
                raise ValueError(
                    f"Header variant on {chain} depends on the block timestamp"
                )
            variant = _activated(by_time, timestamp, variant)
        return variant


HARDFORK_CONFIG = HardforkConfig(
    {
        "mainnet": (
            (0, HeaderVariant.LEGACY),
            (12_965_000, HeaderVariant.LONDON),
            (17_034_870, HeaderVariant.SHANGHAI),
            (19_426_587, HeaderVariant.CANCUN),
            (22_431_084, HeaderVariant.PRAGUE),
        ),
        "ropsten": (
            (0, HeaderVariant.LEGACY),
            (10_499_401, HeaderVariant.LONDON),
        ),
        "goerli": (
            (0, HeaderVariant.LEGACY),
            (5_062_605, HeaderVariant.LONDON),
        ),
        "rinkeby": (
            (0, HeaderVariant.LEGACY),
            (8_897_988, HeaderVariant.LONDON),
        ),
        "sepolia": ((0, HeaderVariant.LONDON),),
        "holesky": ((0, HeaderVariant.LONDON),),
    },
    aliases={"homestead": "mainnet"},
    timestamps={
        "goerli": (
            (1_678_832_736, HeaderVariant.SHANGHAI),
            (1_705_473_120, HeaderVariant.CANCUN),
        ),
        "sepolia": (
            (1_677_557_088, HeaderVariant.SHANGHAI),
            (1_706_655_072, HeaderVariant.CANCUN),
            (1_741_159_776, HeaderVariant.PRAGUE),
        ),
        "holesky": (
            (1_696_000_704, HeaderVariant.SHANGHAI),
            (1_707_305_664, HeaderVariant.CANCUN),
            (1_740_434_112, HeaderVariant.PRAGUE),
        ),
    },
)
