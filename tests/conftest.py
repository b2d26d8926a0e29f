from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from fastapi import FastAPI
from fastapi.responses import JSONResponse

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from lecture_quiz.bootstrap import Bootstrapper
from lecture_quiz.config import AppConfig
from lecture_quiz.services.client import PipelineClient


VIDEO_ID = "65f0c0ffee0000000000abcd"
BASE_URL = "http://testserver/api"


def make_video(video_id: str = VIDEO_ID, **overrides: Any) -> Dict[str, Any]:
    video = {
        "_id": video_id,
        "title": "Intro to Thermodynamics",
        "filename": "thermo.mp4",
        "status": "completed",
        "processingProgress": 100,
        "duration": 125,
    }
    video.update(overrides)
    return video


def make_transcript(video_id: str = VIDEO_ID, segments: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    if segments is None:
        segments = [
            {
                "startTime": 0,
                "endTime": 30,
                "text": "Energy is conserved.",
                "questions": [
                    {
                        "id": "q-1",
                        "question": "What is conserved?",
                        "options": [
                            {"id": "o-1", "text": "Energy", "isCorrect": True},
                            {"id": "o-2", "text": "Entropy", "isCorrect": False},
                        ],
                        "explanation": "The first law.",
                    }
                ],
            },
            {"startTime": 30, "endTime": 65, "text": "Entropy tends to increase.", "questions": []},
        ]
    return {"_id": "t-1", "videoId": video_id, "fullTranscript": "...", "segments": segments}


class FakeBackend:
    """In-memory stand-in for the processing API."""

    def __init__(self) -> None:
        self.videos: Dict[str, Dict[str, Any]] = {}
        self.transcripts: Dict[str, Dict[str, Any]] = {}
        self.questions: Dict[str, List[Dict[str, Any]]] = {}
        self.generated: Dict[str, List[Dict[str, Any]]] = {}
        self.failures: Dict[str, int] = {}
        self.calls: List[str] = []

    def build_app(self) -> FastAPI:
        app = FastAPI()
        backend = self

        def _fail(path: str) -> Optional[JSONResponse]:
            status = backend.failures.get(path)
            if status is None:
                return None
            return JSONResponse({"success": False, "message": "Backend exploded"}, status_code=status)

        def _missing(message: str) -> JSONResponse:
            return JSONResponse({"success": False, "message": message}, status_code=404)

        @app.get("/api/videos")
        def list_videos():
            backend.calls.append("list")
            return {"success": True, "data": list(backend.videos.values())}

        @app.get("/api/videos/{video_id}")
        def get_video(video_id: str):
            backend.calls.append(f"video:{video_id}")
            failure = _fail("video")
            if failure is not None:
                return failure
            if video_id not in backend.videos:
                return _missing("Video not found")
            return {"success": True, "data": backend.videos[video_id]}

        @app.get("/api/transcripts/video/{video_id}")
        def get_transcript(video_id: str):
            backend.calls.append(f"transcript:{video_id}")
            failure = _fail("transcript")
            if failure is not None:
                return failure
            if video_id not in backend.transcripts:
                return _missing("Transcript not found")
            return {"success": True, "data": backend.transcripts[video_id]}

        @app.get("/api/transcripts/transcribe/{video_id}")
        def transcribe(video_id: str):
            backend.calls.append(f"transcribe:{video_id}")
            if video_id not in backend.videos:
                return _missing("Video not found")
            backend.videos[video_id].update(status="transcribing", processingProgress=0, errorMessage=None)
            return {"success": True, "message": "Transcription started", "data": None}

        @app.get("/api/questions/video/{video_id}")
        def get_questions(video_id: str):
            backend.calls.append(f"questions:{video_id}")
            failure = _fail("questions")
            if failure is not None:
                return failure
            return {"success": True, "data": backend.questions.get(video_id, [])}

        @app.post("/api/questions/generate/{video_id}")
        def generate(video_id: str):
            backend.calls.append(f"generate:{video_id}")
            if video_id not in backend.transcripts:
                return JSONResponse(
                    {"success": False, "message": "Transcript not available"}, status_code=400
                )
            backend.questions[video_id] = backend.generated.get(video_id, [])
            return {"success": True, "data": backend.questions[video_id]}

        return app


@pytest.fixture()
def temp_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AppConfig:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "default.json").write_text(
        '{"storage_root": "storage", "api_base_url": "http://testserver/api"}',
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("LECTURE_QUIZ_API_URL", raising=False)

    config = AppConfig.from_mapping(
        {"storage_root": "storage", "api_base_url": BASE_URL},
        base_path=tmp_path,
    )
    Bootstrapper(config).initialize()
    return config


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def make_client(backend: FakeBackend) -> Callable[..., PipelineClient]:
    """Return a factory for clients wired to the fake backend in-process."""

    app = backend.build_app()

    def _factory(**kwargs: Any) -> PipelineClient:
        return PipelineClient(BASE_URL, transport=httpx.ASGITransport(app=app), **kwargs)

    return _factory
