"""Category extraction from a parsed manifest."""

import logging
from pathlib import Path

from sd_provision.core.extractor import build_tasks, extract_category


def test_entries_are_returned_in_manifest_order():
    manifest = {
        "lora_models": [
            {"url": f"https://huggingface.co/r/lora_{i}.safetensors"} for i in range(5)
        ]
    }
    entries = extract_category(manifest, "lora_models")
    assert [e.effective_filename for e in entries] == [
        f"lora_{i}.safetensors" for i in range(5)
    ]


def test_missing_category_yields_no_entries():
    assert extract_category({"vae_models": []}, "unet_models") == []
    assert extract_category({}, "unet_models") == []


def test_unknown_keys_do_not_affect_known_categories():
    manifest = {
        "something_else": [{"url": "https://host/a.bin"}],
        "vae_models": [{"url": "https://host/vae.pt"}],
    }
    assert [e.url for e in extract_category(manifest, "vae_models")] == [
        "https://host/vae.pt"
    ]


def test_filename_field_overrides_url():
    manifest = {
        "checkpoint_models": [
            {"url": "https://civitai.com/api/download/models/4201", "filename": "dreams.safetensors"}
        ]
    }
    (entry,) = extract_category(manifest, "checkpoint_models")
    assert entry.effective_filename == "dreams.safetensors"


def test_invalid_entries_are_skipped():
    manifest = {
        "clip_models": [
            {"url": "https://host/first.bin"},
            {"filename": "no-url.bin"},
            "https://host/plain-string.bin",
            {"url": ""},
            {"url": "ftp://host/file.bin"},
            {"url": 42},
            {"url": "https://host"},
            {"url": "https://host/last.bin"},
        ]
    }
    entries = extract_category(manifest, "clip_models")
    assert [e.effective_filename for e in entries] == ["first.bin", "last.bin"]


def test_non_list_category_is_ignored():
    assert extract_category({"unet_models": {"url": "https://host/a.bin"}}, "unet_models") == []


def test_build_tasks_targets_category_directory(tmp_path: Path):
    manifest = {
        "unet_models": [
            {"url": "https://huggingface.co/x/model.safetensors"},
            {"url": "https://host/y", "filename": "nested/dir/renamed.bin"},
        ]
    }
    tasks = build_tasks(extract_category(manifest, "unet_models"), tmp_path / "unet")
    assert [t.destination for t in tasks] == [
        tmp_path / "unet" / "model.safetensors",
        tmp_path / "unet" / "renamed.bin",
    ]
    assert tasks[0].url == "https://huggingface.co/x/model.safetensors"


def test_colliding_destinations_are_logged(tmp_path: Path, caplog):
    manifest = {
        "lora_models": [
            {"url": "https://civitai.com/api/download?file=a"},
            {"url": "https://civitai.com/api/download?file=b"},
            {"url": "https://civitai.com/api/download?file=c", "filename": "c.safetensors"},
        ]
    }
    with caplog.at_level(logging.WARNING, logger="sd_provision"):
        tasks = build_tasks(extract_category(manifest, "lora_models"), tmp_path)

    assert [t.name for t in tasks] == ["download", "download", "c.safetensors"]
    collisions = [r for r in caplog.records if "both resolve to" in r.getMessage()]
    assert len(collisions) == 1
    assert "file=b" in collisions[0].getMessage()
