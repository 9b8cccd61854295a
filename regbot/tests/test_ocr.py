from __future__ import annotations

from unittest.mock import patch

import pytest

pytest.importorskip("ddddocr")

from regbot.ocr import DdddOcrRecognizer  # noqa: E402


def test_recognizer_normalizes_ocr_output() -> None:
    with patch("regbot.ocr.ddddocr.DdddOcr") as ocr_cls:
        ocr_cls.return_value.classification.return_value = "ab-3d "
        recognizer = DdddOcrRecognizer(beta=True)

    assert recognizer.recognize(b"png") == "AB3D"
    ocr_cls.assert_called_once_with(beta=True, show_ad=False)


def test_recognizer_returns_empty_text_when_ocr_fails() -> None:
    with patch("regbot.ocr.ddddocr.DdddOcr") as ocr_cls:
        ocr_cls.return_value.classification.side_effect = OSError("cannot identify image file")
        recognizer = DdddOcrRecognizer()

    assert recognizer.recognize(b"not an image") == ""
