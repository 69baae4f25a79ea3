from agentsmith.models.database import get_db_context
from agentsmith.models.entities.audit import ActivityLog, ActivityLevel
from agentsmith.services.activity_logger import SqlActivityLogger


class TestSqlActivityLogger:

    def test_writes_row(self, session_factory):
        logger = SqlActivityLogger(session_factory)
        logger.record(
            action="process_error",
            description="Ошибка при обработке обращения",
            entity_type="citizen_request",
            entity_id="req-1",
            level=ActivityLevel.ERROR,
            details={"error_type": "TaskFailedError"},
        )

        with get_db_context(session_factory) as db:
            row = db.query(ActivityLog).one()
            assert row.action == "process_error"
            assert row.level == ActivityLevel.ERROR
            assert row.entity_id == "req-1"
            assert row.details == {"error_type": "TaskFailedError"}

    def test_write_failure_is_swallowed(self, caplog):
        def broken_factory():
            raise RuntimeError("database unavailable")

        SqlActivityLogger(broken_factory).record(action="process_start")

        assert "Failed to write activity log 'process_start'" in caplog.text
