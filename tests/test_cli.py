from pathlib import Path

import pytest
from pydantic import TypeAdapter

from cartsync.__main__ import main
from cartsync.model import CartLine
from tests.conftest import make_line


def test_totals(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cart = tmp_path / "cart.json"
    cart.write_bytes(TypeAdapter(list[CartLine]).dump_json([
        make_line("a", quantity=2, price=2000),
        make_line("b", quantity=1, price=1500),
    ]))

    assert main(["totals", str(cart)]) == 0
    out = capsys.readouterr().out
    assert "subtotal  55.00" in out
    assert "total     69.39" in out


def test_totals_with_discount(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cart = tmp_path / "cart.json"
    cart.write_bytes(TypeAdapter(list[CartLine]).dump_json([
        make_line("a", quantity=2, price=2000),
        make_line("b", quantity=1, price=1500),
    ]))

    assert main(["totals", str(cart), "--discount", "1000"]) == 0
    assert "total     59.39" in capsys.readouterr().out


def test_totals_unreadable_file(tmp_path: Path) -> None:
    assert main(["totals", str(tmp_path / "missing.json")]) == 1


def test_init_db(tmp_path: Path) -> None:
    db = tmp_path / "cart.db"
    assert main(["init-db", "--url", f"sqlite+aiosqlite:///{db}"]) == 0
    assert db.exists()
