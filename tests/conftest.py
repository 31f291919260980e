from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pytest
from sqlalchemy.orm import Session, sessionmaker

from src.clipgate.config import create_db_engine
from src.clipgate.db.db_init import init_db
from src.clipgate.domain.models import ItemKind, MediaItem
from src.clipgate.media.temp_media_store import TempMediaStore
from src.clipgate.media.transcoder import FFmpegTranscoder
from src.clipgate.moderation.audio_classifier import AudioClassifier
from src.clipgate.moderation.policy import PolicyEvaluator
from src.clipgate.moderation.text_moderation import TextModerator
from src.clipgate.moderation.visual_classifier import VisualClassifier
from src.clipgate.publishing.publish_manager import PublishManager
from src.clipgate.records.record_updaters import RecordRouter
from src.clipgate.repositories.media_item_repository import MediaItemRepository
from src.clipgate.staging.staging_client import StagingClient
from src.clipgate.staging.staging_local import LocalStagingStore
from src.clipgate.workers.pipeline_orchestrator import PipelineOrchestrator
from tests.mocks.pipeline import (
    CANONICAL_MP4,
    FakeCdn,
    FakeSpeech,
    FakeTextSignals,
    FakeVisual,
    RecordingUpdater,
    ScriptedRunner,
    no_sleep,
)


@pytest.fixture
def session_factory(tmp_path: Path) -> sessionmaker[Session]:
    engine = create_db_engine(f"sqlite:///{tmp_path / 'state.db'}")
    init_db(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def repository(session_factory) -> MediaItemRepository:
    return MediaItemRepository(session_factory)


@pytest.fixture
def scratch(tmp_path: Path) -> TempMediaStore:
    return TempMediaStore(root=tmp_path / "scratch")


@pytest.fixture
def staging_root(tmp_path: Path) -> Path:
    return tmp_path / "staging"


@pytest.fixture
def staging(staging_root: Path) -> StagingClient:
    return StagingClient(store=LocalStagingStore(staging_root), bucket="moderation")


def make_item(
    repository: MediaItemRepository,
    scratch: TempMediaStore,
    tmp_path: Path,
    *,
    item_id: str = "item-1",
    payload: bytes = CANONICAL_MP4,
    suffix: str = ".mp4",
    kind: ItemKind = ItemKind.PRIMARY_POST,
    **fields,
) -> MediaItem:
    upload = tmp_path / f"upload-{item_id}{suffix}"
    upload.write_bytes(payload)
    source = scratch.adopt_upload(item_id, upload)
    return repository.create(MediaItem(id=item_id, source_path=source, kind=kind, **fields))


@dataclass
class PipelineHarness:
    orchestrator: PipelineOrchestrator
    repository: MediaItemRepository
    scratch: TempMediaStore
    staging: StagingClient
    staging_root: Path
    runner: ScriptedRunner
    speech: FakeSpeech
    text: FakeTextSignals
    visual: FakeVisual
    cdn: FakeCdn
    quarantine: FakeCdn
    updater: RecordingUpdater

    def staged_files(self) -> list[Path]:
        if not self.staging_root.exists():
            return []
        return [path for path in self.staging_root.rglob("*") if path.is_file()]


@pytest.fixture
def harness(repository, scratch, staging, staging_root) -> PipelineHarness:
    runner = ScriptedRunner()
    speech = FakeSpeech(transcript="we went fishing at the lake")
    text = FakeTextSignals()
    visual = FakeVisual()
    cdn = FakeCdn(hostname="cdn.test")
    quarantine = FakeCdn(hostname="quarantine.test")
    updater = RecordingUpdater()
    orchestrator = PipelineOrchestrator(
        repository=repository,
        scratch=scratch,
        transcoder=FFmpegTranscoder(scratch=scratch, runner=runner),
        staging=staging,
        visual=VisualClassifier(service=visual),
        audio=AudioClassifier(speech=speech, moderator=TextModerator(classifier=text)),
        policy=PolicyEvaluator(),
        publisher=PublishManager(cdn=cdn, quarantine_cdn=quarantine, sleep=no_sleep),
        records=RecordRouter(updaters={kind: updater for kind in ItemKind}),
        classification_timeout_seconds=5.0,
    )
    return PipelineHarness(
        orchestrator=orchestrator,
        repository=repository,
        scratch=scratch,
        staging=staging,
        staging_root=staging_root,
        runner=runner,
        speech=speech,
        text=text,
        visual=visual,
        cdn=cdn,
        quarantine=quarantine,
        updater=updater,
    )
