from __future__ import annotations

import pytest

from fakecam.errors import BackendError
from fakecam.filters.engine import OnnxInferenceEngine, SessionConfig


def test_missing_model_file(tmp_path):
    with pytest.raises(BackendError) as excinfo:
        OnnxInferenceEngine(tmp_path / "missing.onnx")
    assert "does not exist" in str(excinfo.value)


def test_corrupt_model_file(tmp_path):
    model = tmp_path / "broken.onnx"
    model.write_bytes(b"this is not a protobuf")

    with pytest.raises(BackendError) as excinfo:
        OnnxInferenceEngine(model)
    assert excinfo.value.__cause__ is not None


def test_unknown_optimization_level(tmp_path):
    model = tmp_path / "model.onnx"
    model.write_bytes(b"")

    with pytest.raises(BackendError):
        OnnxInferenceEngine(model, SessionConfig(optimization_level="maximum"))


def test_session_config_device():
    assert SessionConfig().torch_device().type == "cpu"
    device = SessionConfig(device="cuda:1").torch_device()
    assert device.type == "cuda" and device.index == 1


def test_provider_list_for_devices(tmp_path):
    engine = OnnxInferenceEngine.__new__(OnnxInferenceEngine)
    engine.config = SessionConfig()

    cpu = engine._build_providers(SessionConfig().torch_device(), tensorrt=False)
    assert [name for name, _ in cpu] == ["CPUExecutionProvider"]

    gpu = engine._build_providers(SessionConfig(device="cuda:1").torch_device(), tensorrt=True)
    assert [name for name, _ in gpu] == [
        "TensorrtExecutionProvider",
        "CUDAExecutionProvider",
        "CPUExecutionProvider",
    ]
    assert gpu[1][1]["device_id"] == "1"
