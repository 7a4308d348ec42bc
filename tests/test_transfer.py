from __future__ import annotations

import ftplib
from pathlib import Path

import pytest

import ddsm_fetch.transfer as transfer_mod
from conftest import CASE_DIR, FakeFTP, FakeFTPServer
from ddsm_fetch.exceptions import TransferFailed


def test_fetch_remote_file_writes_base_name(tmp_path: Path, fake_ftp: FakeFTPServer) -> None:
    dest = tmp_path / "dest"

    local = transfer_mod.fetch_remote_file(
        f"{CASE_DIR}/A_1141_1.LEFT_MLO.LJPEG", dest, host="ftp.example.org"
    )

    assert local == dest / "A_1141_1.LEFT_MLO.LJPEG"
    assert local.read_bytes() == b"ljpeg-left-mlo"
    assert not (dest / "A_1141_1.LEFT_MLO.LJPEG.part").exists()
    session = fake_ftp.sessions[0]
    assert session.logged_in
    assert session.passive is True


def test_each_fetch_opens_its_own_session(tmp_path: Path, fake_ftp: FakeFTPServer) -> None:
    transfer_mod.fetch_remote_file(f"{CASE_DIR}/A-1141-1.ics", tmp_path, host="h")
    transfer_mod.fetch_remote_file(f"{CASE_DIR}/A_1141_1.RIGHT_CC.LJPEG", tmp_path, host="h")

    assert len(fake_ftp.sessions) == 2
    assert [s.retrieved for s in fake_ftp.sessions] == [
        [f"{CASE_DIR}/A-1141-1.ics"],
        [f"{CASE_DIR}/A_1141_1.RIGHT_CC.LJPEG"],
    ]


def test_missing_remote_file_raises_and_leaves_nothing(
    tmp_path: Path, fake_ftp: FakeFTPServer
) -> None:
    with pytest.raises(TransferFailed) as excinfo:
        transfer_mod.fetch_remote_file(f"{CASE_DIR}/A_1141_1.LEFT_CC.LJPEG", tmp_path, host="h")

    assert excinfo.value.code == "transfer_failed"
    assert excinfo.value.stage == "fetch"
    assert excinfo.value.context == {
        "remote_path": f"{CASE_DIR}/A_1141_1.LEFT_CC.LJPEG",
        "host": "h",
    }
    assert list(tmp_path.iterdir()) == []


def test_connection_error_raises_transfer_failed(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    def refuse(host: str):
        raise ConnectionRefusedError("connection refused")

    monkeypatch.setattr(transfer_mod, "FTP", refuse)

    with pytest.raises(TransferFailed, match="server is busy"):
        transfer_mod.fetch_remote_file(f"{CASE_DIR}/A-1141-1.ics", tmp_path, host="h")


def test_unsafe_remote_name_is_rejected(tmp_path: Path, fake_ftp: FakeFTPServer) -> None:
    with pytest.raises(TransferFailed, match="Unsafe"):
        transfer_mod.fetch_remote_file("/pub/DDSM/..", tmp_path, host="h")

    assert fake_ftp.sessions == []


def test_session_error_mid_transfer_cleans_part_file(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, fake_ftp: FakeFTPServer
) -> None:
    def broken_retr(self, cmd: str, callback) -> None:
        callback(b"partial")
        raise ftplib.error_temp("426 Connection closed; transfer aborted")

    monkeypatch.setattr(FakeFTP, "retrbinary", broken_retr)

    with pytest.raises(TransferFailed):
        transfer_mod.fetch_remote_file(f"{CASE_DIR}/A-1141-1.ics", tmp_path, host="h")

    assert list(tmp_path.iterdir()) == []
