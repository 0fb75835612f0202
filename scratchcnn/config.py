import dataclasses
import typing as t


@dataclasses.dataclass
class TrainingConfig:
    input_rows: int = 28
    input_cols: int = 28
    seed: int = 123
    learning_rate: float = 0.01
    progress_resolution: int = 100
    scale_factor: float = 10.0
    learning_decay: float = 0.97
    max_failures: int = 5
    models_dir: str = "models"


def merge_overrides(config: TrainingConfig, **overrides) -> TrainingConfig:
    """Copy of ``config`` with every non-None override applied."""
    fields = {f.name for f in dataclasses.fields(config)}
    changes = {}  # type: t.Dict[str, t.Any]

    for k, v in overrides.items():
        if k not in fields:
            raise TypeError(f"unknown configuration field '{k}'")

        if v is None:
            continue

        changes[k] = v

    return dataclasses.replace(config, **changes)
