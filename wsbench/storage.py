# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""CSV persistence for round metrics."""

import csv
import re
from pathlib import Path
from typing import Any, Mapping, Union

# Results files are named <test>_<run>.csv
RESULTS_FILE_PATTERN = re.compile(r"^(?P<test>\d+)_(?P<run>\d+)\.csv$")


def next_results_path(folder: Union[str, Path], run: int = 1) -> Path:
    """
    Pick the results file for a new benchmark in ``folder``.

    Scans for existing ``<test>_<run>.csv`` files and returns the next test
    number, or ``1_<run>.csv`` when there are none. Creates the folder.
    """
    folder = Path(folder)
    folder.mkdir(parents=True, exist_ok=True)

    last_test = 0
    for path in folder.iterdir():
        match = RESULTS_FILE_PATTERN.match(path.name)
        if match:
            last_test = max(last_test, int(match.group("test")))

    return folder / f"{last_test + 1}_{run}.csv"


class CsvSink:
    """Appends one row per save, writing the header the first time."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def save(self, fields: Mapping[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        file_exists = self.path.exists()

        with open(self.path, "a", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=list(fields.keys()))
            if not file_exists:
                writer.writeheader()
            writer.writerow(fields)
