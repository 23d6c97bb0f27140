from futures_dashboard.core.use_cases.trade_merger import merge_trades, trade_identity
from futures_dashboard.core.use_cases.trade_normalizer import normalize_trade
from tests.helpers import make_trade


def test_live_copy_wins_over_archive():
    live = [make_trade(1, "BUY", 1, price=100.0)]
    archive = [make_trade(1, "BUY", 1, price=99.0)]

    merged = merge_trades(live, archive)

    assert len(merged) == 1
    assert merged[0].price == 100.0


def test_identity_ignores_price_quantity_and_time():
    a = make_trade(1, "BUY", 1, price=100.0, minute=0)
    b = make_trade(1, "BUY", 2, price=101.0, minute=5)
    assert trade_identity(a) == trade_identity(b)


def test_different_order_or_side_is_a_different_fill():
    base = make_trade(1, "BUY", 1)
    other_order = make_trade(1, "BUY", 1, order_id=9)
    other_side = make_trade(1, "BUY", 1, position_side="SHORT")

    assert len(merge_trades([base], [other_order, other_side])) == 3


def test_raw_and_normalized_share_identity():
    raw = make_trade(1, "sell", 1, position_side="short")
    assert trade_identity(raw) == trade_identity(normalize_trade(raw))


def test_duplicates_inside_one_source_collapse():
    t = make_trade(1, "BUY", 1)
    assert merge_trades([t, t], []) == [t]


def test_archive_only_fills_are_kept():
    merged = merge_trades([make_trade(2, "SELL", 1)], [make_trade(1, "BUY", 1)])
    assert {t.id for t in merged} == {1, 2}
