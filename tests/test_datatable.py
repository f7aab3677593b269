from datetime import date

from starlette.datastructures import QueryParams

from tests.admin.base import *  # noqa: F401,F403

from tenant_admin.core.exceptions import DataTableConfigError
from tenant_admin.services.datatable.columns import Column
from tenant_admin.services.datatable.definition import TableDefinition
from tenant_admin.services.datatable.filters import Filter
from tenant_admin.services.datatable.query_builder import DataTableQueryBuilder, QueryOptions
from tenant_admin.services.datatable.registry import ColumnComponentRegistry, FilterComponentRegistry
from tenant_admin.services.datatable.rendering import COMPONENT_BADGE, render_cell, render_component, render_filter
from tenant_admin.services.datatable.tables import all_tables, users_table
from tenant_admin.services.datatable.transformer import DataTableTransformer
from tenant_admin.services.datatable.types import ColumnType, FilterType, SortDirection


class TableDefinitionValidationTests(unittest.TestCase):
    def test_known_tables_are_valid(self):
        self.assertEqual(set(all_tables()), {"users", "teams", "roles", "email_templates"})

    def test_duplicate_column_key(self):
        with self.assertRaises(DataTableConfigError):
            TableDefinition(User, columns=[Column.make("name").build(), Column.make("name", "Again").build()])

    def test_unknown_attribute_or_relationship(self):
        with self.assertRaises(DataTableConfigError):
            TableDefinition(User, columns=[Column.make("nickname").build()])
        with self.assertRaises(DataTableConfigError):
            TableDefinition(User, columns=[Column.make("groups").field("groups.name").build()])

    def test_sorting_across_to_many_is_rejected(self):
        with self.assertRaises(DataTableConfigError):
            TableDefinition(User, columns=[Column.make("roles").field("roles.name").sortable().build()])

    def test_computed_column_needs_callbacks_to_sort(self):
        with self.assertRaises(DataTableConfigError):
            TableDefinition(User, columns=[Column.make("score").content(lambda row: 1).sortable().build()])
        definition = TableDefinition(
            User,
            columns=[Column.make("score").content(lambda row: 1).sortable(lambda q, direction, builder: q).build()],
        )
        self.assertEqual(definition.sortable_keys(), ["score"])

    def test_filter_with_field_and_relationship_is_ambiguous(self):
        with self.assertRaises(DataTableConfigError):
            TableDefinition(
                User,
                columns=[Column.make("name").build()],
                filters=[Filter.make("team").field("name").relationship("teams", "uuid").build()],
            )

    def test_filter_must_map_to_a_column(self):
        with self.assertRaises(DataTableConfigError):
            TableDefinition(User, columns=[Column.make("name").build()], filters=[Filter.make("nickname").build()])

    def test_unregistered_column_type(self):
        with self.assertRaises(DataTableConfigError):
            TableDefinition(User, columns=[Column.make("name").build()], column_registry=ColumnComponentRegistry())

    def test_default_sort_must_exist(self):
        with self.assertRaises(DataTableConfigError):
            TableDefinition(User, columns=[Column.make("name").build()], default_sort=("rank", "asc"))


class ComponentRegistryTests(unittest.TestCase):
    def test_register_never_overwrites(self):
        registry = ColumnComponentRegistry()
        registry.register(ColumnType.TEXT, "cells.text")
        with self.assertRaises(DataTableConfigError):
            registry.register("text", "cells.other")
        self.assertEqual(registry.get_component("text"), "cells.text")

    def test_lookup_never_falls_back(self):
        registry = ColumnComponentRegistry({ColumnType.TEXT: "cells.text"})
        with self.assertRaises(DataTableConfigError):
            registry.get_component(ColumnType.BADGE)
        with self.assertRaises(DataTableConfigError):
            registry.get_component("hologram")
        self.assertFalse(registry.has_component("hologram"))

    def test_validate_complete(self):
        partial = FilterComponentRegistry({FilterType.SELECT: "filters.select"})
        self.assertIn(FilterType.BOOLEAN, partial.missing())
        with self.assertRaises(DataTableConfigError):
            partial.validate_complete()
        ColumnComponentRegistry.with_defaults().validate_complete()
        FilterComponentRegistry.with_defaults().validate_complete()


class QueryOptionsTests(unittest.TestCase):
    def test_from_params_reads_flat_request_state(self):
        params = QueryParams(
            "search=ann&sort_by=name&sort_dir=DESC&page=0&per_page=abc"
            "&role=admin&role=editor&created_at_from=2026-01-01&is_active=1&unknown=x"
        )
        options = QueryOptions.from_params(None, users_table(), params)
        self.assertEqual(options.search, "ann")
        self.assertIs(options.sort_direction, SortDirection.DESC)
        self.assertEqual(options.page, 1)
        self.assertIsNone(options.per_page)
        self.assertEqual(options.filters["role"], ["admin", "editor"])
        self.assertEqual(options.filters["created_at_from"], "2026-01-01")
        self.assertEqual(options.filters["is_active"], "1")
        self.assertNotIn("unknown", options.filters)


class DataTableQueryBuilderTests(TenantAdminTestBase):
    def setUp(self):
        super().setUp()
        self.alice = self._create_user(name="Alice Martin", created_at=datetime(2026, 1, 10, 12, tzinfo=timezone.utc))
        self.bob = self._create_user(name="Bob Stone", created_at=datetime(2026, 3, 5, 9, tzinfo=timezone.utc))
        self.carol = self._create_user(
            name="Carol Diaz", is_active=False, created_at=datetime(2026, 2, 20, 9, tzinfo=timezone.utc)
        )

    def _build(self, db, **kwargs):
        definition = users_table()
        return DataTableQueryBuilder(definition).build(QueryOptions(db=db, definition=definition, **kwargs))

    def test_default_sort_is_newest_first_and_unknown_sort_falls_back(self):
        with self.SessionLocal() as db:
            page = self._build(db, sort_by="password_hash")
        self.assertEqual([u.name for u in page.rows], ["Bob Stone", "Carol Diaz", "Alice Martin"])

        with self.SessionLocal() as db:
            page = self._build(db, sort_by="name", sort_direction=SortDirection.DESC)
        self.assertEqual([u.name for u in page.rows], ["Carol Diaz", "Bob Stone", "Alice Martin"])

    def test_search_escapes_like_wildcards(self):
        with self.SessionLocal() as db:
            self.assertEqual(self._build(db, search="stone").total, 1)
            self.assertEqual(self._build(db, search="_").total, 0)
            self.assertEqual(self._build(db, search="   ").total, 3)

    def test_date_range_with_one_bound(self):
        with self.SessionLocal() as db:
            since = self._build(db, filters={"created_at_from": "2026-02-01"})
            until = self._build(db, filters={"created_at_to": "2026-01-10"})
        self.assertEqual({u.name for u in since.rows}, {"Bob Stone", "Carol Diaz"})
        self.assertEqual(since.filters_applied, 1)
        # a date-only upper bound covers the whole day
        self.assertEqual([u.name for u in until.rows], ["Alice Martin"])

    def test_boolean_and_mapped_filters(self):
        with self.SessionLocal() as db:
            db.get(User, self.bob.id).email_verified_at = datetime(2026, 3, 6, tzinfo=timezone.utc)
            db.commit()
            inactive = self._build(db, filters={"is_active": "0"})
            verified = self._build(db, filters={"verified": "verified"})
            unverified = self._build(db, filters={"verified": "unverified"})
        self.assertEqual([u.name for u in inactive.rows], ["Carol Diaz"])
        self.assertEqual([u.name for u in verified.rows], ["Bob Stone"])
        self.assertEqual(unverified.total, 2)

    def test_invalid_filter_value_is_ignored(self):
        with self.SessionLocal() as db:
            page = self._build(db, filters={"is_active": "maybe"})
        self.assertEqual(page.total, 3)
        self.assertEqual(page.filters_applied, 0)

    def test_per_page_is_clamped_and_pages_are_counted(self):
        with self.SessionLocal() as db:
            huge = self._build(db, per_page=100000)
            second = self._build(db, per_page=2, page=2)
        self.assertEqual(huge.per_page, settings.DATATABLE_MAX_PER_PAGE)
        self.assertEqual(second.last_page, 2)
        self.assertFalse(second.has_more)
        self.assertEqual(len(second.rows), 1)

    def test_to_many_search_does_not_duplicate_rows(self):
        with self.SessionLocal() as db:
            user = db.get(User, self.alice.id)
            user.roles = [Role(name="editor"), Role(name="reviewer")]
            db.commit()

        with self.SessionLocal() as db:
            page = self._build(db, search="er")
            self.assertEqual(page.total, 1)
            self.assertEqual(len(page.rows), 1)
            row = DataTableTransformer(users_table()).transform(page.rows)[0]
        self.assertEqual(sorted(item["label"] for item in row["roles"]), ["editor", "reviewer"])

    def test_relationship_filter(self):
        team = self._create_team("Ops", members=[self.bob])
        with self.SessionLocal() as db:
            page = self._build(db, filters={"team": team.uuid})
            # teams are listed but not searchable
            self.assertEqual(self._build(db, search="Ops").total, 0)
        self.assertEqual([u.name for u in page.rows], ["Bob Stone"])

    def test_soft_deleted_rows_are_excluded(self):
        with self.SessionLocal() as db:
            db.get(User, self.carol.id).soft_delete()
            db.commit()
            self.assertEqual(self._build(db).total, 2)


class RenderingTests(unittest.TestCase):
    def test_badge_list_renders_each_item(self):
        column = Column.make("roles").field("roles.name").badge(variant="primary").build()
        html = str(render_cell(column, [{"value": 1, "label": "Admin"}, {"value": 2, "label": "Ops"}]))
        self.assertEqual(
            html,
            '<span class="badge badge-primary badge-sm">Admin</span><span class="badge badge-primary badge-sm">Ops</span>',
        )
        self.assertEqual(str(render_cell(column, [])), "")

    def test_badge_colors_follow_value(self):
        column = Column.make("status").badge(colors={"active": "success"}).build()
        self.assertIn("badge-success", str(render_cell(column, "active")))
        self.assertIn("badge-neutral", str(render_cell(column, "paused")))

    def test_text_is_escaped_and_safe_html_is_not(self):
        self.assertEqual(str(render_cell(Column.make("name").build(), "<b>x</b>")), '<span class="cell-text">&lt;b&gt;x&lt;/b&gt;</span>')
        self.assertEqual(str(render_cell(Column.make("bio").safe_html().build(), "<b>x</b>")), "<b>x</b>")

    def test_link_href_template(self):
        column = Column.make("email").link("mailto:{value}").build()
        self.assertIn('href="mailto:ann@example.com"', str(render_cell(column, "ann@example.com")))

    def test_render_component(self):
        self.assertEqual(render_component("carousel", "content"), "content")
        html = str(render_component(COMPONENT_BADGE, ["String", 123, True]))
        self.assertIn(">String<", html)
        self.assertIn(">123<", html)
        self.assertIn(">1<", html)

    def test_boolean_filter_marks_selection(self):
        item = Filter.make("is_active", "Active").boolean().build()
        html = str(render_filter(item, "1"))
        self.assertIn('<option value="1" selected>Yes</option>', html)
        self.assertIn('<option value="">Any</option>', html)


class TransformerFormattingTests(unittest.TestCase):
    def test_dates_follow_locale_and_timezone(self):
        fr = DataTableTransformer(users_table(), locale="fr_FR", timezone="Europe/Paris")
        en = DataTableTransformer(users_table(), locale="en_US", timezone="UTC")
        day = Column.make("created_at").date().build()
        moment = Column.make("last_login_at").datetime().build()

        self.assertEqual(fr.format_value(day, date(2026, 3, 5)), "05/03/2026")
        self.assertEqual(en.format_value(day, date(2026, 3, 5)), "03/05/2026")
        stamp = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.assertEqual(fr.format_value(moment, stamp), "01/01/2026 13:00:00")
        self.assertEqual(en.format_value(moment, stamp), "01/01/2026 12:00:00")

    def test_numbers_and_currency(self):
        fr = DataTableTransformer(users_table(), locale="fr_FR")
        en = DataTableTransformer(users_table(), locale="en_US")
        amount = Column.make("amount").currency().build()
        euros = Column.make("amount").currency("EUR").build()
        count = Column.make("count").number(decimals=1).build()

        self.assertEqual(fr.format_value(amount, 1234.5), "1 234,50 €")
        self.assertEqual(en.format_value(amount, 1234.5), "$1,234.50")
        self.assertEqual(en.format_value(euros, 1234.5), "€1,234.50")
        self.assertEqual(fr.format_value(count, 1234.56), "1 234,6")
        self.assertIsNone(en.format_value(count, None))

    def test_date_column_uses_display_timezone(self):
        tokyo = DataTableTransformer(users_table(), locale="en_US", timezone="Asia/Tokyo")
        utc = DataTableTransformer(users_table(), locale="en_US", timezone="UTC")
        day = Column.make("created_at").date().build()
        late_evening = datetime(2026, 1, 10, 23, 30, tzinfo=timezone.utc)

        self.assertEqual(tokyo.format_value(day, late_evening), "01/11/2026")
        self.assertEqual(utc.format_value(day, late_evening), "01/10/2026")
        # naive timestamps are stored in UTC
        self.assertEqual(tokyo.format_value(day, late_evening.replace(tzinfo=None)), "01/11/2026")
        # plain dates have no instant to shift
        self.assertEqual(tokyo.format_value(day, date(2026, 1, 10)), "01/10/2026")

    def test_currency_honours_column_separators(self):
        en = DataTableTransformer(users_table(), locale="en_US")
        swiss = Column.make("amount").currency(decimal_separator=".", thousands_separator="'").build()
        count = Column.make("count").number(decimals=2, decimal_separator=".", thousands_separator="'").build()

        self.assertEqual(en.format_value(swiss, 1234567.5), "$1'234'567.50")
        self.assertEqual(en.format_value(count, 1234567.5), "1'234'567.50")

    def test_unknown_locale_falls_back(self):
        self.assertEqual(DataTableTransformer(users_table(), locale="xx_XX").locale, "en_US")
