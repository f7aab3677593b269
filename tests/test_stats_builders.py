from datetime import date

from tests.admin.base import *  # noqa: F401,F403

from tenant_admin.services.stats.builders import ChartBuilder, ChartType, MetricBuilder, StatTrend, StatVariant
from tenant_admin.services.stats.dashboard import last_months, registrations_chart, trend_between, users_per_month


class ChartBuilderTests(unittest.TestCase):
    def test_to_dict_has_chartjs_shape(self):
        chart = (
            ChartBuilder.make()
            .type("bar")
            .labels(["Jan", "Feb"])
            .dataset("Sales", [3, 5], {"backgroundColor": "red"})
            .build()
        )
        self.assertEqual(
            chart.to_dict(),
            {
                "type": "bar",
                "data": {
                    "labels": ["Jan", "Feb"],
                    "datasets": [{"backgroundColor": "red", "label": "Sales", "data": [3, 5]}],
                },
                "options": {},
            },
        )

    def test_options_are_deep_merged(self):
        chart = (
            ChartBuilder.make()
            .type(ChartType.LINE)
            .options({"plugins": {"legend": {"display": False}}, "responsive": True})
            .title("Signups")
            .options({"plugins": {"title": {"color": "#333"}}})
            .build()
        )
        self.assertEqual(
            chart.options,
            {
                "plugins": {
                    "legend": {"display": False},
                    "title": {"display": True, "text": "Signups", "color": "#333"},
                },
                "responsive": True,
            },
        )

    def test_built_payload_is_detached_from_builder(self):
        builder = ChartBuilder.make().type("pie").options({"plugins": {"legend": {"display": True}}})
        first = builder.build()
        builder.options({"plugins": {"legend": {"display": False}}})
        self.assertTrue(first.options["plugins"]["legend"]["display"])

    def test_type_is_required_and_validated(self):
        with self.assertRaises(ValueError):
            ChartBuilder.make().labels(["a"]).build()
        with self.assertRaises(ValueError):
            ChartBuilder.make().type("sankey")


class MetricBuilderTests(unittest.TestCase):
    def test_full_metric(self):
        metric = (
            MetricBuilder.make()
            .label("Revenue")
            .value("$1,200")
            .trend(12, "up")
            .icon("currency-dollar")
            .color("success")
            .variant(StatVariant.SOLID)
            .build()
        )
        self.assertEqual(
            metric.to_dict(),
            {
                "label": "Revenue",
                "value": "$1,200",
                "trend_value": 12.0,
                "trend": "up",
                "icon": "currency-dollar",
                "color": "success",
                "variant": "solid",
            },
        )

    def test_label_and_value_are_required(self):
        with self.assertRaises(ValueError):
            MetricBuilder.make().value(1).build()
        with self.assertRaises(ValueError):
            MetricBuilder.make().label("Empty").build()
        # zero is a value
        self.assertEqual(MetricBuilder.make().label("Zero").value(0).build().value, 0)
        self.assertEqual(MetricBuilder.make().label("Plain").value(1).build().to_dict()["trend"], None)


class DashboardHelperTests(unittest.TestCase):
    def test_trend_between(self):
        self.assertEqual(trend_between(0, 0), (0.0, StatTrend.NEUTRAL))
        self.assertEqual(trend_between(3, 0), (100.0, StatTrend.UP))
        self.assertEqual(trend_between(15, 10), (50.0, StatTrend.UP))
        self.assertEqual(trend_between(2, 3), (33.3, StatTrend.DOWN))
        self.assertEqual(trend_between(4, 4), (0.0, StatTrend.NEUTRAL))

    def test_last_months_wraps_the_year(self):
        self.assertEqual(
            last_months(4, today=date(2026, 2, 17)),
            [date(2025, 11, 1), date(2025, 12, 1), date(2026, 1, 1), date(2026, 2, 1)],
        )
        self.assertEqual(last_months(1, today=date(2026, 1, 31)), [date(2026, 1, 1)])


class RegistrationChartTests(TenantAdminTestBase):
    def test_users_are_bucketed_by_month(self):
        self._create_user(name="Old", created_at=datetime(2025, 6, 3, tzinfo=timezone.utc))
        self._create_user(name="Dec", created_at=datetime(2025, 12, 31, 23, tzinfo=timezone.utc))
        self._create_user(name="Feb A", created_at=datetime(2026, 2, 1, tzinfo=timezone.utc))
        self._create_user(name="Feb B", created_at=datetime(2026, 2, 16, tzinfo=timezone.utc))

        months = last_months(3, today=date(2026, 2, 17))
        with self.SessionLocal() as db:
            self.assertEqual(users_per_month(db, months), [1, 0, 2])
            chart = registrations_chart(db, locale="fr_FR", months=3, today=date(2026, 2, 17)).to_dict()
        self.assertEqual(chart["data"]["labels"], ["2025-12", "2026-01", "2026-02"])
        self.assertEqual(chart["data"]["datasets"][0]["data"], [1, 0, 2])
        self.assertTrue(chart["options"]["plugins"]["title"]["display"])
