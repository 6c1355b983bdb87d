"""Tests for createPlan call-data decoding."""

import pytest
from eth_abi import encode

from sip_discovery.contract import EXECUTE_PLAN_SELECTOR, FINALIZE_PLAN_SELECTOR
from sip_discovery.decoder import decode_first_string_arg, decode_plan_keys

from conftest import CREATE_SELECTOR, create_call_data, make_tx


class TestDecodeFirstStringArg:
    def test_decodes_plan_key(self):
        assert decode_first_string_arg(create_call_data("sip_beddC4_1700000000")) == "sip_beddC4_1700000000"

    def test_unicode_key(self):
        assert decode_first_string_arg(create_call_data("plän-€")) == "plän-€"

    def test_empty_string(self):
        assert decode_first_string_arg(create_call_data("")) == ""

    def test_truncated_length_field(self):
        data = create_call_data("K1")
        # selector + 5 head words, then a length word cut in half
        with pytest.raises(ValueError):
            decode_first_string_arg(data[:4 + 5 * 32 + 16])

    def test_length_past_end(self):
        data = bytearray(create_call_data("K1"))
        length_at = 4 + 5 * 32
        data[length_at:length_at + 32] = (1000).to_bytes(32, "big")
        with pytest.raises(ValueError):
            decode_first_string_arg(bytes(data))

    def test_offset_out_of_bounds(self):
        data = bytearray(create_call_data("K1"))
        data[4:36] = (10**6).to_bytes(32, "big")
        with pytest.raises(ValueError):
            decode_first_string_arg(bytes(data))

    def test_too_short(self):
        with pytest.raises(ValueError):
            decode_first_string_arg(bytes.fromhex("e1dc1c04"))

    def test_invalid_utf8(self):
        data = bytearray(create_call_data("ab"))
        start = 4 + 6 * 32
        data[start:start + 2] = b"\xff\xfe"
        with pytest.raises(ValueError):
            decode_first_string_arg(bytes(data))


class TestDecodePlanKeys:
    def test_truncated_tx_skipped_others_kept(self):
        good1 = make_tx("0x1", create_call_data("K1"))
        broken = make_tx("0x2", create_call_data("K2")[:4 + 5 * 32 + 10])
        good2 = make_tx("0x3", create_call_data("K3"))
        keys, skipped = decode_plan_keys([good1, broken, good2], CREATE_SELECTOR)
        assert [k.plan_key for k in keys] == ["K1", "K3"]
        assert skipped == 1

    def test_execute_call_ignored(self):
        execute_data = bytes.fromhex(EXECUTE_PLAN_SELECTOR[2:]) + encode(["string"], ["K3"])
        txs = [
            make_tx("0xexec", execute_data, method_id=EXECUTE_PLAN_SELECTOR),
            make_tx("0xcreate", create_call_data("K3")),
        ]
        keys, skipped = decode_plan_keys(txs, CREATE_SELECTOR)
        assert [(k.plan_key, k.tx_id) for k in keys] == [("K3", "0xcreate")]
        assert skipped == 0

    def test_failed_transactions_ignored(self):
        keys, _ = decode_plan_keys([make_tx("0x1", create_call_data("K1"), status=False)], CREATE_SELECTOR)
        assert keys == []

    def test_selector_match_is_case_insensitive(self):
        keys, _ = decode_plan_keys([make_tx("0x1", create_call_data("K1"), method_id="0xE1DC1C04")],
                                   CREATE_SELECTOR.upper().replace("0X", "0x"))
        assert [k.plan_key for k in keys] == ["K1"]

    def test_tag_and_input_disagree(self):
        tx = make_tx("0x1", create_call_data("K1", selector="0xdeadbeef"))
        keys, skipped = decode_plan_keys([tx], CREATE_SELECTOR)
        assert keys == []
        assert skipped == 1

    def test_duplicate_key_keeps_first_tx(self):
        txs = [make_tx("0xnew", create_call_data("K1")), make_tx("0xold", create_call_data("K1"))]
        keys, _ = decode_plan_keys(txs, CREATE_SELECTOR)
        assert [(k.plan_key, k.tx_id) for k in keys] == [("K1", "0xnew")]

    def test_finalize_call_ignored(self):
        finalize_data = bytes.fromhex(FINALIZE_PLAN_SELECTOR[2:]) + encode(["string"], ["K1"])
        keys, skipped = decode_plan_keys([make_tx("0xfin", finalize_data, method_id=FINALIZE_PLAN_SELECTOR)],
                                         CREATE_SELECTOR)
        assert keys == []
        assert skipped == 0
