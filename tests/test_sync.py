"""
Tests for the sync core: identity resolution, record upsert, the batch runner
and the engine.
"""

import logging
import sqlite3

import pytest

from erp_sync.storage.db import RecordNotFoundError, SyncDatabase
from erp_sync.storage.record import Record
from erp_sync.sync.base import (
    SyncContext,
    Synchronizer,
    available_synchronizers,
    get_synchronizer_class,
    register_synchronizer,
    unregister_synchronizer,
)
from erp_sync.sync.engine import SyncEngine, SyncReport
from erp_sync.sync.errors import SynchronizerConfigError
from erp_sync.sync.identity import IdentityResolver
from erp_sync.sync.mapper import FieldMap
from erp_sync.sync.outcome import RowOutcome, RunSummary
from erp_sync.sync.runner import BatchRunner
from erp_sync.sync.sources import sqlite_connector
from erp_sync.sync.upsert import RecordUpsertDriver


class Widgets(Synchronizer):
    NAME = "test_widgets"
    MODULE = "Widgets"
    SOURCE_TABLE = "WIDGET"
    EXTERNAL_ID_COLUMN = "ID"
    QUERY = "SELECT * FROM WIDGET ORDER BY ID"
    FIELD_MAP = {"NAME": ("name", "strip"), "SIZE": ("size", "to_int")}

    def fixed_fields(self, row):
        return {"status": "ACTIVE", "erp_id": row["ID"]}


class Parts(Synchronizer):
    NAME = "test_parts"
    MODULE = "Parts"
    SOURCE_TABLE = "PART"
    EXTERNAL_ID_COLUMN = "ID"
    QUERY = "SELECT * FROM PART ORDER BY ID"
    FIELD_MAP = {"NAME": "name", "SIZE": ("size", "to_int")}

    def required_parents(self, row):
        return {"widgetid": self.find_in_map_table(row.get("WIDGET_ID"), "WIDGET")}


@pytest.fixture
def context(database):
    return SyncContext(database=database, external_system="wapro")


@pytest.fixture
def registered():
    """Register the test synchronizers for the duration of a test."""
    register_synchronizer(Widgets)
    register_synchronizer(Parts)
    yield
    unregister_synchronizer(Widgets.NAME)
    unregister_synchronizer(Parts.NAME)


@pytest.fixture
def widget_source(tmp_path):
    path = tmp_path / "widgets.db"
    conn = sqlite3.connect(str(path))
    conn.executescript(
        """
        CREATE TABLE WIDGET (ID INTEGER PRIMARY KEY, NAME TEXT, SIZE TEXT);
        CREATE TABLE PART (ID INTEGER PRIMARY KEY, WIDGET_ID INTEGER,
                           NAME TEXT, SIZE TEXT);
        INSERT INTO WIDGET VALUES (1, ' Bolt ', '5'), (2, 'Nut', '3');
        INSERT INTO PART VALUES (10, 1, 'Head', '1'), (11, 9, 'Lost', '2');
        """
    )
    conn.commit()
    conn.close()
    return sqlite_connector(path)


class TestIdentityResolver:
    """Tests for IdentityResolver."""

    def test_unmapped_id_resolves_to_none(self, database):
        resolver = IdentityResolver(database, "wapro")
        assert resolver.resolve("WIDGET", 1) is None

    def test_mapped_id_resolves_to_record(self, database):
        record = Record.new("Widgets")
        record.register_mapping("wapro", "WIDGET", 1)
        record_id = database.save_record(record)

        resolver = IdentityResolver(database, "wapro")
        assert resolver.resolve("WIDGET", 1) == record_id
        assert resolver.resolve("WIDGET", "1") == record_id

    @pytest.mark.parametrize("external_id", [None, "", "   "])
    def test_empty_external_id_never_resolves(self, database, external_id):
        """Test that empty ids are treated as unmapped."""
        resolver = IdentityResolver(database, "wapro")
        assert resolver.resolve("WIDGET", external_id) is None

    def test_resolution_is_scoped_by_external_system(self, database):
        record = Record.new("Widgets")
        record.register_mapping("wapro", "WIDGET", 1)
        database.save_record(record)

        assert IdentityResolver(database, "other").resolve("WIDGET", 1) is None


class TestRecordUpsertDriver:
    """Tests for RecordUpsertDriver."""

    @pytest.fixture
    def driver(self, database):
        return RecordUpsertDriver(database, "wapro")

    @pytest.fixture
    def field_map(self):
        return FieldMap({"NAME": "name"})

    def _upsert(self, driver, row, field_map, identity, **kwargs):
        return driver.upsert(
            row,
            field_map,
            identity,
            kwargs.pop("fixed_fields", None),
            module="Widgets",
            source_table="WIDGET",
            external_id=row["ID"],
            **kwargs,
        )

    def test_creates_new_record_with_mapping(self, database, driver, field_map):
        """Test creating a record for an unmapped row."""
        outcome, record_id = self._upsert(
            driver, {"ID": 1, "NAME": "Bolt"}, field_map, None
        )

        assert outcome is RowOutcome.CREATED
        assert database.find_mapping("wapro", "WIDGET", 1) == record_id
        assert database.load_record("Widgets", record_id).get("name") == "Bolt"

    def test_updates_mapped_record_in_place(self, database, driver, field_map):
        """Test updating the record an existing mapping points at."""
        _, record_id = self._upsert(driver, {"ID": 1, "NAME": "Bolt"}, field_map, None)

        outcome, updated_id = self._upsert(
            driver, {"ID": 1, "NAME": "Big bolt"}, field_map, record_id
        )

        assert outcome is RowOutcome.UPDATED
        assert updated_id == record_id
        assert database.load_record("Widgets", record_id).get("name") == "Big bolt"
        assert database.get_mapping_count() == 1

    def test_update_preserves_unmapped_attributes(self, database, driver, field_map):
        """Test that attributes outside the field map survive an update."""
        record = Record.new("Widgets")
        record.set_many({"name": "Bolt", "notes": "added in CRM"})
        record.register_mapping("wapro", "WIDGET", 1)
        record_id = database.save_record(record)

        self._upsert(driver, {"ID": 1, "NAME": "Bolt 2"}, field_map, record_id)

        loaded = database.load_record("Widgets", record_id)
        assert loaded.get("notes") == "added in CRM"
        assert loaded.get("name") == "Bolt 2"

    def test_fixed_fields_and_parents_are_set(self, database, driver, field_map):
        outcome, record_id = self._upsert(
            driver,
            {"ID": 1, "NAME": "Bolt"},
            field_map,
            None,
            fixed_fields={"status": "ACTIVE"},
            required_parents={"widgetid": 5},
        )

        loaded = database.load_record("Widgets", record_id)
        assert loaded.get("status") == "ACTIVE"
        assert loaded.get("widgetid") == 5

    def test_field_map_overrides_fixed_fields(self, database, driver):
        """Test that mapped columns are applied after fixed fields."""
        field_map = FieldMap({"STATUS": "status"})
        _, record_id = self._upsert(
            driver,
            {"ID": 1, "STATUS": "FROM_ROW"},
            field_map,
            None,
            fixed_fields={"status": "FIXED"},
        )

        assert database.load_record("Widgets", record_id).get("status") == "FROM_ROW"

    def test_unresolved_parent_skips_without_writing(
        self, database, driver, field_map
    ):
        """Test that a missing parent skips the row and writes nothing."""
        outcome, record_id = self._upsert(
            driver,
            {"ID": 1, "NAME": "Bolt"},
            field_map,
            None,
            required_parents={"widgetid": None},
        )

        assert outcome is RowOutcome.SKIPPED
        assert record_id is None
        assert database.get_record_counts() == {}
        assert database.get_mapping_count() == 0

    def test_conversion_error_writes_nothing(self, database, driver):
        """Test that a failing conversion leaves no record or mapping."""
        field_map = FieldMap({"SIZE": ("size", "to_int")})

        with pytest.raises(ValueError):
            self._upsert(driver, {"ID": 1, "SIZE": "big"}, field_map, None)

        assert database.get_record_counts() == {}
        assert database.get_mapping_count() == 0

    def test_dangling_mapping_raises(self, driver, field_map):
        """Test that a mapping to a vanished record is an error."""
        with pytest.raises(RecordNotFoundError):
            self._upsert(driver, {"ID": 1, "NAME": "Bolt"}, field_map, 999)


class TestSynchronizerContract:
    """Tests for the Synchronizer base class and registry."""

    def test_missing_required_attribute_raises(self, context):
        class Incomplete(Synchronizer):
            NAME = "incomplete"
            MODULE = "Things"

        with pytest.raises(SynchronizerConfigError, match="SOURCE_TABLE"):
            Incomplete(context)

    def test_unknown_conversion_fails_at_construction(self, context):
        class Typo(Widgets):
            FIELD_MAP = {"SIZE": ("size", "to_itn")}

        with pytest.raises(SynchronizerConfigError, match="to_itn"):
            Typo(context)

    def test_synchronizer_conversions_layer_over_shared(self, context):
        class Custom(Widgets):
            FIELD_MAP = {"NAME": ("name", "shout")}

            def get_conversions(self):
                return {"shout": lambda value: value.upper()}

        synchronizer = Custom(context)
        assert synchronizer.import_record({"ID": 1, "NAME": "bolt"}) == 2
        record_id = context.database.find_mapping("wapro", "WIDGET", 1)
        assert context.database.load_record("Widgets", record_id).get("name") == "BOLT"

    def test_import_record_without_external_id_raises(self, context):
        with pytest.raises(ValueError, match="no ID value"):
            Widgets(context).import_record({"NAME": "Bolt"})

    def test_import_record_with_blank_external_id_raises(self, context):
        with pytest.raises(ValueError, match="no ID value"):
            Widgets(context).import_record({"ID": " ", "NAME": "Bolt"})

    def test_fetch_rows_without_source_raises(self, context):
        with pytest.raises(SynchronizerConfigError, match="no ERP source"):
            Widgets(context).fetch_rows()

    def test_build_query_without_query_raises(self, context):
        class NoQuery(Widgets):
            QUERY = ""

        with pytest.raises(SynchronizerConfigError, match="has no query"):
            NoQuery(context).build_query()

    def test_describe_row(self, context):
        assert Widgets(context).describe_row({"ID": 7}) == "ID=7"

    def test_registry_keeps_registration_order(self, registered):
        names = available_synchronizers()
        assert names.index("test_widgets") < names.index("test_parts")
        assert get_synchronizer_class("test_parts") is Parts

    def test_register_is_idempotent_for_same_class(self, registered):
        assert register_synchronizer(Widgets) is Widgets

    def test_duplicate_name_rejected(self, registered):
        class Impostor(Widgets):
            pass

        with pytest.raises(SynchronizerConfigError, match="already registered"):
            register_synchronizer(Impostor)

    def test_unnamed_synchronizer_rejected(self):
        class Unnamed(Synchronizer):
            pass

        with pytest.raises(SynchronizerConfigError, match="does not define NAME"):
            register_synchronizer(Unnamed)

    def test_unknown_name_lists_available(self, registered):
        with pytest.raises(SynchronizerConfigError, match="Unknown synchronizer 'x'"):
            get_synchronizer_class("x")


class TestBatchRunner:
    """Tests for BatchRunner."""

    def test_first_run_creates_second_run_updates(self, context):
        """Test that re-running over unchanged rows only updates."""
        rows = [{"ID": 1, "NAME": "Bolt", "SIZE": "5"}, {"ID": 2, "NAME": "Nut"}]
        synchronizer = Widgets(context)
        runner = BatchRunner()

        first = runner.run(synchronizer, rows)
        before = {
            external_id: context.database.load_record(
                "Widgets", context.database.find_mapping("wapro", "WIDGET", external_id)
            ).attributes
            for external_id in (1, 2)
        }
        second = runner.run(synchronizer, rows)

        assert str(first) == "Create 2 | Update 0 | Skipped 0 | Error 0"
        assert str(second) == "Create 0 | Update 2 | Skipped 0 | Error 0"
        assert context.database.get_record_counts() == {"Widgets": 2}
        for external_id, attributes in before.items():
            record_id = context.database.find_mapping("wapro", "WIDGET", external_id)
            loaded = context.database.load_record("Widgets", record_id)
            assert loaded.attributes == attributes

    def test_repeated_id_in_one_run_does_not_duplicate(self, context):
        """Test that a row seen twice creates once and then updates."""
        rows = [{"ID": 1, "NAME": "Bolt"}, {"ID": 1, "NAME": "Bolt v2"}]

        summary = BatchRunner().run(Widgets(context), rows)

        assert summary.created == 1
        assert summary.updated == 1
        assert context.database.get_record_counts() == {"Widgets": 1}

    @pytest.mark.parametrize("blank_id", ["", "  "])
    def test_blank_external_id_is_an_error_on_every_run(self, context, blank_id):
        """Test that a blank id never creates a record or a mapping."""
        rows = [{"ID": blank_id, "NAME": "Blank"}]
        synchronizer = Widgets(context)
        runner = BatchRunner()

        first = runner.run(synchronizer, rows)
        second = runner.run(synchronizer, rows)

        assert first == RunSummary(created=0, updated=0, skipped=0, errored=1)
        assert second == first
        assert context.database.get_record_counts() == {}
        assert context.database.get_mapping_count() == 0

    def test_mixed_outcomes(self, context):
        """Test one row of each outcome in a single run."""
        widget = Widgets(context)
        widget.import_record({"ID": 1, "NAME": "Bolt"})
        parts = Parts(context)
        parts.import_record({"ID": 10, "WIDGET_ID": 1, "NAME": "Head"})

        rows = [
            {"ID": 10, "WIDGET_ID": 1, "NAME": "Head v2"},
            {"ID": 11, "WIDGET_ID": 1, "NAME": "Shaft"},
            {"ID": 12, "WIDGET_ID": 99, "NAME": "Orphan"},
            {"ID": 13, "WIDGET_ID": 1, "NAME": "Broken", "SIZE": "huge"},
        ]
        summary = BatchRunner().run(parts, rows)

        assert summary == RunSummary(created=1, updated=1, skipped=1, errored=1)
        assert summary.total == len(rows)
        assert context.database.find_mapping("wapro", "PART", 12) is None
        assert context.database.find_mapping("wapro", "PART", 13) is None

    def test_error_does_not_stop_run(self, context, caplog):
        """Test that a failing row is logged and the next row still imports."""
        rows = [{"ID": 1, "SIZE": "huge"}, {"ID": 2, "NAME": "Nut"}]

        with caplog.at_level(logging.ERROR, logger="erp_sync"):
            summary = BatchRunner().run(Widgets(context), rows)

        assert summary.errored == 1
        assert summary.created == 1
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "Row 1 (ID=1) failed: ValueError" in errors[0].getMessage()
        assert errors[0].synchronizer == "test_widgets"
        assert errors[0].row_number == 1
        assert errors[0].row_identity == "ID=1"

    def test_error_traceback_logged_at_debug(self, context, caplog):
        rows = [{"ID": 1, "SIZE": "huge"}]

        with caplog.at_level(logging.DEBUG, logger="erp_sync"):
            BatchRunner().run(Widgets(context), rows)

        assert any(
            r.levelno == logging.DEBUG and r.exc_info is not None
            for r in caplog.records
        )

    def test_unexpected_outcome_counted_as_skipped(self, context, caplog):
        """Test that an undefined outcome code is skipped with a warning."""

        class Odd(Widgets):
            def import_record(self, row):
                return 7

        with caplog.at_level(logging.WARNING, logger="erp_sync"):
            summary = BatchRunner().run(Odd(context), [{"ID": 1}])

        assert summary.skipped == 1
        assert "unexpected outcome 7" in caplog.text

    def test_boolean_outcome_is_not_a_code(self, context, caplog):
        """Test that True is skipped with a warning rather than counted updated."""

        class Flag(Widgets):
            def import_record(self, row):
                return True

        with caplog.at_level(logging.WARNING, logger="erp_sync"):
            summary = BatchRunner().run(Flag(context), [{"ID": 1}])

        assert summary == RunSummary(created=0, updated=0, skipped=1, errored=0)
        assert "unexpected outcome True" in caplog.text

    def test_plain_int_outcomes_are_accepted(self, context):
        class Codes(Widgets):
            def import_record(self, row):
                return row["CODE"]

        rows = [{"ID": 1, "CODE": 0}, {"ID": 2, "CODE": 1}, {"ID": 3, "CODE": 2}]
        summary = BatchRunner().run(Codes(context), rows)

        assert summary == RunSummary(created=1, updated=1, skipped=1, errored=0)

    def test_source_failure_propagates(self, context):
        """Test that an error from the row stream aborts the run."""

        def rows():
            yield {"ID": 1, "NAME": "Bolt"}
            raise sqlite3.OperationalError("connection lost")

        with pytest.raises(sqlite3.OperationalError):
            BatchRunner().run(Widgets(context), rows())

        assert context.database.get_record_counts() == {"Widgets": 1}

    def test_empty_source(self, context):
        assert BatchRunner().run(Widgets(context), []).total == 0

    def test_summary_logged_at_info(self, context, caplog):
        with caplog.at_level(logging.INFO, logger="erp_sync"):
            BatchRunner().run(Widgets(context), [{"ID": 1}])

        assert "[test_widgets] Create 1 | Update 0 | Skipped 0 | Error 0" in caplog.text


class TestRunSummary:
    """Tests for RunSummary and RowOutcome."""

    def test_str_format(self):
        summary = RunSummary(created=3, updated=10, skipped=1, errored=0)
        assert str(summary) == "Create 3 | Update 10 | Skipped 1 | Error 0"

    def test_merge_and_total(self):
        total = RunSummary(1, 2, 3, 4).merge(RunSummary(1, 1, 1, 1))
        assert total.to_dict() == {
            "created": 2,
            "updated": 3,
            "skipped": 4,
            "errored": 5,
        }
        assert total.total == 14
        assert total.has_errors

    @pytest.mark.parametrize(
        "code,expected",
        [
            (0, RowOutcome.SKIPPED),
            (1, RowOutcome.UPDATED),
            (2, RowOutcome.CREATED),
            (3, None),
            (-1, None),
            (None, None),
            ("1", None),
            (True, None),
        ],
    )
    def test_from_code(self, code, expected):
        assert RowOutcome.from_code(code) is expected


class TestSyncEngine:
    """Tests for SyncEngine."""

    def test_runs_synchronizers_in_order(self, database, widget_source, registered):
        """Test that parents imported earlier in the run resolve for children."""
        engine = SyncEngine(database, source=widget_source)

        report = engine.run(["test_widgets", "test_parts"])

        assert list(report.summaries) == ["test_widgets", "test_parts"]
        assert str(report.summaries["test_widgets"]) == (
            "Create 2 | Update 0 | Skipped 0 | Error 0"
        )
        assert str(report.summaries["test_parts"]) == (
            "Create 1 | Update 0 | Skipped 1 | Error 0"
        )
        assert report.total.total == 4
        assert not report.has_errors

    def test_children_first_are_skipped(self, database, widget_source, registered):
        """Test that running children before parents skips them."""
        report = SyncEngine(database, source=widget_source).run(
            ["test_parts", "test_widgets"]
        )

        assert report.summaries["test_parts"].skipped == 2
        assert report.summaries["test_parts"].created == 0

    def test_second_run_updates(self, database, widget_source, registered):
        engine = SyncEngine(database, source=widget_source)
        engine.run(["test_widgets", "test_parts"])

        report = engine.run(["test_widgets", "test_parts"])

        assert report.total == RunSummary(created=0, updated=3, skipped=1, errored=0)
        assert database.get_record_counts() == {"Parts": 1, "Widgets": 2}

    def test_unknown_name_fails_before_any_run(
        self, database, widget_source, registered
    ):
        """Test that every synchronizer is built before the first runs."""
        engine = SyncEngine(database, source=widget_source)

        with pytest.raises(SynchronizerConfigError):
            engine.run(["test_widgets", "missing"])

        assert database.get_record_counts() == {}

    def test_settings_reach_synchronizers(self, database, registered):
        engine = SyncEngine(database, settings={"currency_map": {"PLN": 1}})
        synchronizers = engine.build_synchronizers(["test_widgets"])
        assert synchronizers[0].settings == {"currency_map": {"PLN": 1}}
        assert synchronizers[0].context.external_system == "wapro"

    def test_empty_report(self):
        report = SyncReport()
        assert report.total == RunSummary()
        assert not report.has_errors

    def test_file_databases(self, tmp_path, widget_source, registered):
        """Test a run against a file-backed record store."""
        database = SyncDatabase(str(tmp_path / "crm.db"))
        database.initialize()

        SyncEngine(database, source=widget_source).run(["test_widgets"])

        assert database.get_mapping_count() == 2
