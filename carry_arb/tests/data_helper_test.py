import pandas as pd
import pytest

from carry_arb.helpers.data_helper import save_df_to_csv, load_df_from_csv


def test_save_and_load_csv(tmp_path):
    df = pd.DataFrame({
        "net_pnl": [0.4985, -2.01],
        "exit_time": pd.to_datetime(["2026-01-27 12:00:00", "2026-01-27 13:00:00"]),
    })

    out = tmp_path / "subdir" / "trades.csv"
    # Save with directory auto-creation
    save_df_to_csv(df, str(out), index=False, create_dirs=True)
    assert out.exists()

    df2 = load_df_from_csv(str(out), parse_dates=["exit_time"])
    assert list(df2.columns) == ["net_pnl", "exit_time"]
    assert len(df2) == 2
    assert df2["net_pnl"].iloc[0] == pytest.approx(0.4985)
    assert pd.api.types.is_datetime64_any_dtype(df2["exit_time"])


def test_save_rejects_non_dataframe(tmp_path):
    with pytest.raises(ValueError):
        save_df_to_csv([1, 2, 3], str(tmp_path / "x.csv"))


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_df_from_csv(str(tmp_path / "missing.csv"))
