"""
test_chains.py - Chain names and the Block record.
"""

import pytest

from realtps.chains import EVM_CHAINS, U64_MAX, Block, Chain


class TestChain:

    def test_parse_is_case_insensitive(self):
        assert Chain.parse("Ethereum") is Chain.ETHEREUM
        assert Chain.parse(" xdai ") is Chain.XDAI

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Unknown chain"):
            Chain.parse("bitcoin")

    def test_str_is_config_name(self):
        assert str(Chain.BINANCE) == "binance"

    def test_solana_is_the_only_non_evm_chain(self):
        assert set(Chain) - EVM_CHAINS == {Chain.SOLANA}


class TestBlock:

    def _block(self, **overrides):
        fields = dict(
            chain=Chain.ETHEREUM, block_number=1, timestamp=1_700_000_000,
            num_txs=0, hash="0xaa", parent_hash="0xbb",
        )
        fields.update(overrides)
        return Block(**fields)

    def test_u64_bounds(self):
        assert self._block(block_number=U64_MAX).block_number == U64_MAX
        with pytest.raises(ValueError):
            self._block(block_number=U64_MAX + 1)
        with pytest.raises(ValueError):
            self._block(timestamp=-1)

    @pytest.mark.parametrize("value", [1.5, "3", True])
    def test_rejects_non_integers(self, value):
        with pytest.raises(ValueError):
            self._block(num_txs=value)

