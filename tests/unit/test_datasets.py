import numpy as np
import pandas as pd
import pytest

from rpropnet.data import (
    DatasetSpec,
    available_datasets,
    design_matrix,
    get_dataset,
    register_dataset,
)


def test_builtin_datasets_are_registered():
    assert {"csv", "linear", "separable", "xor"} <= set(available_datasets())
    xor = get_dataset("xor", copies=2)
    assert xor.covariate.shape == (8, 3)
    assert np.all(xor.covariate[:, 0] == 1)
    assert xor.response_names == ["xor"]
    separable = get_dataset("separable")
    assert separable.observations == 6
    assert separable.response[:, 0].tolist() == [0, 0, 0, 1, 1, 1]


def test_unknown_dataset():
    with pytest.raises(KeyError):
        get_dataset("mnist")


def test_register_dataset_directly():
    def _tiny():
        return DatasetSpec(
            name="tiny",
            covariate=np.ones((2, 2)),
            response=np.zeros((2, 1)),
            covariate_names=["x"],
            response_names=["y"],
        )

    register_dataset("tiny-direct", _tiny)
    assert get_dataset("tiny-direct").name == "tiny"


def test_registry_validates_names():
    @register_dataset("broken-names")
    def _broken():
        return DatasetSpec(
            name="broken",
            covariate=np.ones((2, 3)),
            response=np.zeros((2, 1)),
            covariate_names=["x"],
            response_names=["y"],
        )

    with pytest.raises(ValueError):
        get_dataset("broken-names")


def test_design_matrix_one_hot_encodes_labels():
    frame = pd.DataFrame(
        {
            "length": [1.0, 2.0, 3.0, 4.0],
            "width": [0.5, 0.5, 1.5, 1.5],
            "species": ["b", "a", "b", "c"],
        }
    )
    spec = design_matrix(frame, "species")
    assert spec.covariate_names == ["length", "width"]
    assert spec.response_names == ["species.a", "species.b", "species.c"]
    assert spec.covariate.shape == (4, 3)
    assert spec.response.tolist() == [[0, 1, 0], [1, 0, 0], [0, 1, 0], [0, 0, 1]]


def test_design_matrix_numeric_response_and_errors():
    frame = pd.DataFrame({"a": [1, 2], "b": [3, 4], "y": [0, 1]})
    spec = design_matrix(frame, ["y"], "a")
    assert spec.covariate.tolist() == [[1.0, 1.0], [1.0, 2.0]]
    assert spec.response.tolist() == [[0.0], [1.0]]
    with pytest.raises(KeyError):
        design_matrix(frame, "z")
    with pytest.raises(KeyError):
        design_matrix(frame, "y", ["q"])


def test_csv_dataset(tmp_path):
    path = tmp_path / "points.csv"
    pd.DataFrame({"x1": [0.0, 1.0, 9.0], "x2": [1.0, 0.0, 8.0], "case": [0, 0, 1]}).to_csv(
        path, index=False
    )
    spec = get_dataset("csv", csv_path=str(path), response="case", covariates="x1,x2")
    assert spec.covariate_names == ["x1", "x2"]
    assert spec.response_names == ["case"]
    assert spec.provenance["path"] == str(path)
