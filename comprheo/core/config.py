"""局所反復ソルバーの設定."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any


@dataclass(frozen=True)
class LocalIterationConfig:
    """局所 Newton 反復の設定.

    反復上限はすべて明示的な設定値。発散入力で無限ループしないことを保証する。

    Attributes:
        tol: 相対ステップの収束判定値
        verbose: 反復の進捗を表示する
        tau_initial: 応力の初期推定（None = 調和平均）
        eps_initial: Parallel 群の歪み速度の初期推定（None = 群単独の応答）
        max_iter: 外側 Newton の最大反復回数
            （直列スカラー・Parallel 群の応力駆動・ブロック Newton 共通）
        max_iter_return_mapping: return mapping（塑性乗数）の最大反復回数
        max_iter_fd_plastic: 差分版ソルバーで塑性要素を含む場合の最大反復回数
        err_guard: 塑性ブロック Newton の収束指標 Σ|dx|/(|x|+err_guard) のガード
        fd_rel_step: 中心差分の相対刻み（値がゼロのときは絶対刻みとして使う）
    """

    tol: float = 1e-6
    verbose: bool = False
    tau_initial: float | None = None
    eps_initial: float | None = None
    max_iter: int = 1000
    max_iter_return_mapping: int = 100
    max_iter_fd_plastic: int = 10
    err_guard: float = 1e-9
    fd_rel_step: float = 1e-6

    def __post_init__(self) -> None:
        if self.tol <= 0:
            raise ValueError(f"tol は正値でなければなりません: {self.tol}")
        for name in ("max_iter", "max_iter_return_mapping", "max_iter_fd_plastic"):
            value = getattr(self, name)
            if value < 1:
                raise ValueError(f"{name} は 1 以上でなければなりません: {value}")
        if self.err_guard < 0:
            raise ValueError(f"err_guard は非負でなければなりません: {self.err_guard}")
        if self.fd_rel_step <= 0:
            raise ValueError(f"fd_rel_step は正値でなければなりません: {self.fd_rel_step}")


_FIELD_NAMES = frozenset(f.name for f in fields(LocalIterationConfig))


def resolve_config(
    config: LocalIterationConfig | None = None, **overrides: Any
) -> LocalIterationConfig:
    """設定とキーワード上書きから最終的な設定を作る.

    Args:
        config: 基準設定（None = デフォルト）
        **overrides: LocalIterationConfig のフィールド名での上書き

    Returns:
        LocalIterationConfig
    """
    unknown = set(overrides) - _FIELD_NAMES
    if unknown:
        raise TypeError(f"不明な設定項目: {sorted(unknown)}")
    if config is None:
        config = LocalIterationConfig()
    if overrides:
        config = replace(config, **overrides)
    return config
