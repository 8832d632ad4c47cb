from datetime import datetime, timedelta

from queries import AuditLogger, AuditLogQueries


def test_entries_without_user_are_attributed_to_system():
    AuditLogger.log_system('backup', 'all', 'Nightly backup')
    entry = AuditLogQueries.list_logs()[0]
    assert entry['username'] == 'System'
    assert entry['user_id'] is None
    assert entry['action'] == 'system'
    assert entry['entity'] == 'backup'


def test_helpers_set_action(admin):
    AuditLogger.log_view('student', 'abc', 'Viewed profile')
    AuditLogger.log_restore('system', 'all', 'Restored')
    AuditLogger.log_logout(admin['id'])
    actions = [e['action'] for e in AuditLogQueries.list_logs(limit=3)]
    assert actions == ['logout', 'restore', 'view']


def test_list_logs_filters(admin):
    AuditLogger.log_create('student', '1', 'Created student A')
    AuditLogger.log_update('sponsor', '2', 'Updated sponsor B')
    AuditLogger.set_user(None)
    AuditLogger.log_delete('student', '3', 'Deleted student C')

    assert [e['entity_id'] for e in AuditLogQueries.list_logs(entity='student')] == ['3', '1']
    assert [e['entity_id'] for e in AuditLogQueries.list_logs(username='admin@', entity='student')] == ['1']
    assert AuditLogQueries.list_logs(action='update')[0]['details'] == 'Updated sponsor B'
    assert AuditLogQueries.list_logs(start=datetime.now() + timedelta(hours=1)) == []
    assert len(AuditLogQueries.list_logs(limit=2)) == 2


def test_audit_failures_are_not_raised(monkeypatch):
    import queries.audit_log as audit_log

    class FailingSession:
        rolled_back = False

        def add(self, row):
            pass

        def commit(self):
            raise RuntimeError("disk full")

        def rollback(self):
            self.rolled_back = True

        def close(self):
            pass

    session = FailingSession()
    monkeypatch.setattr(audit_log, 'get_db', lambda: session)
    AuditLogger.log_create('student', '1', 'Created')
    assert session.rolled_back is True
