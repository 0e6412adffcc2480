"""
Session Store
Owns the quiz sessions, the current-session pointer, answer recording,
completion/reset and analysis attachment.

Every mutation goes through _commit(), which writes the collection entry and
refreshes the current-session cache in one synchronous step and then persists.
Operations against unknown session ids are no-ops that return None.
"""
import logging
from typing import Any, Callable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from eduquest.db.storage import StoragePort
from eduquest.models.generation import (
    AnswerPair,
    GenerationConfig,
    clamped_config,
    config_violations,
)
from eduquest.models.question import AnswerValue, QuestionKind, RawGenerationResult
from eduquest.models.session import (
    QuizSession,
    SessionAnalysis,
    SessionRecord,
    UserAnswer,
    utcnow,
)
from eduquest.utils.id_generator import generate_id
from eduquest.utils.question_normalizer import normalize

logger = logging.getLogger(__name__)

SESSIONS_KEY = "eduquest-sessions"
DEFAULT_RECENT_LIMIT = 5


class SessionStore:
    """In-memory session collection with durable persistence"""

    def __init__(
        self,
        storage: StoragePort,
        id_factory: Callable[[], str] = generate_id,
        clock: Callable = utcnow
    ):
        self.storage = storage
        self._id_factory = id_factory
        self._clock = clock
        self._sessions: List[QuizSession] = []
        self._current: Optional[QuizSession] = None
        self.hydrated = False

    # ==================== HYDRATION ====================

    async def hydrate(self) -> None:
        """
        Load persisted sessions, then mark the store hydrated

        A failed or corrupt load leaves the store empty; it is still marked
        hydrated so consumers are not left waiting.
        """
        try:
            raw = await self.storage.load(SESSIONS_KEY)
            if raw:
                record = SessionRecord.model_validate(raw)
                self._sessions = record.sessions
                self._current = next(
                    (s for s in self._sessions if s.id == record.currentSessionId),
                    None
                )
            logger.info(f"✅ Sessions store hydrated ({len(self._sessions)} sessions)")
        except ValidationError as e:
            logger.error(f"❌ Persisted sessions record is invalid: {e}")
        except Exception as e:
            logger.error(f"❌ Error hydrating sessions store: {e}")
        finally:
            self.hydrated = True

    def is_authoritative_miss(self, session_id: str) -> bool:
        """True only when the store is hydrated and the session is absent"""
        return self.hydrated and self._find(session_id) is None

    # ==================== INTERNALS ====================

    def _find(self, session_id: str) -> Optional[QuizSession]:
        return next((s for s in self._sessions if s.id == session_id), None)

    def _persist(self) -> None:
        record = SessionRecord(
            sessions=self._sessions,
            currentSessionId=self._current.id if self._current else None
        )
        self.storage.save(SESSIONS_KEY, record.model_dump(mode="json"))

    def _commit(self, session: QuizSession) -> QuizSession:
        """Replace the collection entry for session.id and refresh the current cache"""
        self._sessions = [session if s.id == session.id else s for s in self._sessions]
        if self._current is not None and self._current.id == session.id:
            self._current = session
        self._persist()
        return session

    def _update(self, session_id: str, **changes: Any) -> Optional[QuizSession]:
        session = self._find(session_id)
        if session is None:
            logger.debug(f"Ignoring update for unknown session {session_id}")
            return None
        return self._commit(session.model_copy(update=changes))

    # ==================== SESSION MANAGEMENT ====================

    def create_session(
        self,
        name: Optional[str],
        topic: str,
        raw_questions: Union[RawGenerationResult, Mapping[str, Any], None],
        config: Union[GenerationConfig, Mapping[str, Any], None] = None
    ) -> str:
        """
        Create a session from a raw question set and make it current

        Args:
            name: Display name; blank names become "Quiz on {topic}"
            topic: Topic or prompt the questions were generated for
            raw_questions: Raw generation result (five kind arrays)
            config: Requested per-kind counts

        Returns:
            The new session id
        """
        if config is None:
            generation_config = GenerationConfig()
        elif isinstance(config, GenerationConfig):
            generation_config = config
        else:
            violations = config_violations(dict(config))
            if violations:
                logger.warning(f"⚠️ Clamping session config: {', '.join(violations)}")
            generation_config = clamped_config(dict(config))

        now = self._clock()
        session = QuizSession(
            id=self._id_factory(),
            display_name=name or f"Quiz on {topic}",
            description=f"Assessment on {topic}",
            topic=topic,
            generation_config=generation_config,
            questions=normalize(raw_questions),
            created_at=now,
            last_accessed_at=now,
        )

        self._sessions = [session] + self._sessions
        self._current = session
        self._persist()

        logger.info(f"✅ Created session {session.id} with {len(session.questions)} questions")
        return session.id

    def rename_session(self, session_id: str, name: str) -> Optional[QuizSession]:
        return self._update(session_id, display_name=name)

    def delete_session(self, session_id: str) -> None:
        if self._find(session_id) is None:
            return
        self._sessions = [s for s in self._sessions if s.id != session_id]
        if self._current is not None and self._current.id == session_id:
            self._current = None
        self._persist()
        logger.info(f"🗑️ Deleted session {session_id}")

    def select_session(self, session_id: str) -> Optional[QuizSession]:
        """Make a session current and refresh its last-accessed time"""
        session = self._find(session_id)
        if session is None:
            return None
        refreshed = session.model_copy(update={"last_accessed_at": self._clock()})
        self._current = refreshed
        return self._commit(refreshed)

    refresh_session = select_session

    # ==================== PROGRESS ====================

    def record_answer(self, question_id: str, value: AnswerValue) -> None:
        """
        Record an answer on the current session, replacing any earlier one

        Silently ignored when no session is current.
        """
        if self._current is None:
            logger.debug("No current session; answer ignored")
            return

        now = self._clock()
        answers = dict(self._current.answers)
        answers[question_id] = UserAnswer(question_id=question_id, value=value, recorded_at=now)
        self._commit(self._current.model_copy(update={"answers": answers, "last_accessed_at": now}))

    def answer_for(self, question_id: str) -> Optional[AnswerValue]:
        if self._current is None:
            return None
        answer = self._current.answers.get(question_id)
        return answer.value if answer else None

    def clear_answers(self, session_id: str) -> Optional[QuizSession]:
        return self._update(session_id, answers={}, completed=False, analysis=None)

    def reset_session(self, session_id: str) -> Optional[QuizSession]:
        return self.clear_answers(session_id)

    def mark_completed(self, session_id: str) -> Optional[QuizSession]:
        return self._update(session_id, completed=True)

    # ==================== ANALYSIS ====================

    def attach_analysis(self, session_id: str, analysis: SessionAnalysis) -> Optional[QuizSession]:
        """Attach (or overwrite) an analysis; this also completes the session"""
        return self._update(session_id, analysis=analysis, completed=True)

    def build_analysis_request(
        self,
        session_id: str
    ) -> Optional[Tuple[List[AnswerPair], List[AnswerPair]]]:
        """Collect (question, answer) pairs for the short and long questions"""
        session = self._find(session_id)
        if session is None:
            return None

        def pairs(kind: QuestionKind) -> List[AnswerPair]:
            result = []
            for question in session.questions_of_kind(kind):
                answer = session.answers.get(question.id)
                result.append(AnswerPair(
                    question=question.prompt,
                    answer=str(answer.value) if answer else ""
                ))
            return result

        return pairs(QuestionKind.SHORT), pairs(QuestionKind.LONG)

    # ==================== QUERIES ====================

    @property
    def sessions(self) -> List[QuizSession]:
        return list(self._sessions)

    @property
    def current_session(self) -> Optional[QuizSession]:
        return self._current

    def get_session_by_id(self, session_id: str) -> Optional[QuizSession]:
        return self._find(session_id)

    def get_recent_sessions(self, limit: int = DEFAULT_RECENT_LIMIT) -> List[QuizSession]:
        # sorted() is stable, so ties keep collection order
        ordered = sorted(self._sessions, key=lambda s: s.last_accessed_at, reverse=True)
        return ordered[:limit]

    def get_completed_sessions(self) -> List[QuizSession]:
        return [s for s in self._sessions if s.completed]

    def get_incomplete_sessions(self) -> List[QuizSession]:
        return [s for s in self._sessions if not s.completed]
