"""Quick runnable example of the exercise-quality pipeline.

Runs the full analysis (load, filter, split, cross-validate, evaluate,
rank) on a sensor export and writes ``results.json`` plus plots. Pass a
CSV path, or let the script look for ``data/pml-training.csv`` in the
repository. A small ensemble keeps the run short.

Run:
    python -m examples.run_quick_example [path/to/pml-training.csv]
"""

import sys
from pathlib import Path

from lift_quality.api.workflows import run_pipeline
from lift_quality.config.pipeline_config import PipelineConfig


def main():
    repo_root = Path(__file__).resolve().parents[1]
    data_path = Path(sys.argv[1]) if len(sys.argv) > 1 else repo_root / "data" / "pml-training.csv"

    if not data_path.exists():
        print(f"Sensor export not found at {data_path}. Please provide a CSV to run the quick example.")
        return

    # Reference settings with a lighter ensemble
    config = PipelineConfig.for_quick_run(mtry_grid=(5, 9, 13))
    results = run_pipeline(data_path, config=config, output_dir=repo_root / "examples_output")

    print(results.summary(top_n=10))


if __name__ == "__main__":
    main()
