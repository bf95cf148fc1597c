"""
analytics_service.py
---------------------
Facade over every analytics model family. Wires together:
    1. Data preparation      ->  PreparedDataset
    2. Family training       ->  forecasting, categorization, anomaly,
                                 budgeting, optimization
    3. Queries               ->  plain result dataclasses

This is the single entry point for callers. Everything else is internal
machinery.

Usage:
    from analytics_service import AnalyticsService

    service = AnalyticsService()
    report = service.initialize(transactions)
    service.predict_expenses(days=7)
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Sequence

from anomaly.anomaly_detection import (
    IQROutlierDetector,
    SpendingPatternDetector,
    ZScoreAnomalyDetector,
)
from budgeting.budget_recommendation import (
    PercentileBudgetRecommender,
    TrendAwareBudgetRecommender,
)
from categorization.smart_categorization import NaiveBayesClassifier, RuleBasedCategorizer
from config.config_loader import (
    get_categorization_config,
    get_forecasting_config,
    get_service_config,
)
from core.data_preparation import as_records, prepare, record_field, text_field
from core.exceptions import NotInitializedError, NotTrainedError
from core.models import (
    AnomalyReport,
    AnomalyResult,
    BudgetRecommendationSet,
    CategorizedTransaction,
    FamilyTrainingResult,
    OptimizationReport,
    PredictionSet,
    PreparedDataset,
    SavingsPlan,
    TrainingReport,
)
from forecasting.expense_forecasting import (
    MovingAverageModel,
    SeasonalExpenseModel,
    SimpleLinearRegression,
)
from optimization.expense_optimization import (
    ComparativeSpendingAnalyzer,
    SpendingPatternOptimizer,
)

logger = logging.getLogger(__name__)


class ServiceStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class AnalyticsService:
    """
    Trains every model family from one user's transaction history and
    serves the results.

    A family that fails to train is logged and recorded in the training
    report; the remaining families still train. Queries never modify the
    trained models, so repeated calls return equal results.
    """

    def __init__(
        self,
        z_threshold: float | None = None,
        iqr_multiplier: float | None = None,
        budget_buffer: float | None = None,
        trend_weight_recent: float | None = None,
        trend_safety_margin: float | None = None,
        moving_average_window: int | None = None,
        comparison_period_days: int | None = None,
    ):
        """
        Each argument overrides the same-named key of the service block in
        config.yaml. None keeps the configured value.
        """
        self.config = get_service_config()

        def pick(value, key):
            return value if value is not None else self.config[key]

        self.z_threshold = float(pick(z_threshold, "z_threshold"))
        self.iqr_multiplier = float(pick(iqr_multiplier, "iqr_multiplier"))
        self.budget_buffer = float(pick(budget_buffer, "budget_buffer"))
        self.trend_weight_recent = float(pick(trend_weight_recent, "trend_weight_recent"))
        self.trend_safety_margin = float(pick(trend_safety_margin, "trend_safety_margin"))
        self.moving_average_window = int(pick(moving_average_window, "moving_average_window"))
        self.comparison_period_days = int(pick(comparison_period_days, "comparison_period_days"))
        self.min_transactions = dict(self.config["min_transactions"])
        self.bayes_override_confidence = float(
            get_categorization_config()["bayes_override_confidence"]
        )

        self._status = ServiceStatus.UNINITIALIZED
        self._training_report: TrainingReport | None = None
        self.dataset: PreparedDataset | None = None
        self._models: dict[str, Any] = {}

    # -------------------------------------------------------------------------
    # STATE
    # -------------------------------------------------------------------------

    @property
    def status(self) -> ServiceStatus:
        return self._status

    @property
    def is_ready(self) -> bool:
        return self._status is ServiceStatus.READY

    @property
    def training_report(self) -> TrainingReport | None:
        return self._training_report

    def _require_ready(self, operation: str) -> None:
        if not self.is_ready:
            raise NotInitializedError(operation)

    def _trained(self, key: str) -> Any | None:
        model = self._models.get(key)
        return model if model is not None and model.trained else None

    # -------------------------------------------------------------------------
    # TRAINING
    # -------------------------------------------------------------------------

    def initialize(self, transactions: Sequence[Any]) -> TrainingReport:
        """
        Prepares the history and trains every model family with enough data.

        Raises:
            InvalidInputError: If the transactions are empty or malformed.
                The service keeps its previous state in that case.
        """
        dataset = prepare(transactions)
        self._status = ServiceStatus.INITIALIZING
        logger.info(f"Initializing analytics models. Input: {len(dataset):,} transactions.")

        models: dict[str, Any] = {}
        report = TrainingReport(transaction_count=len(dataset))
        stages = [
            ("forecasting", self._train_forecasting),
            ("categorization", self._train_categorization),
            ("anomaly", self._train_anomaly),
            ("budgeting", self._train_budgeting),
            ("optimization", self._train_optimization),
        ]
        for family, stage in stages:
            report.families[family] = self._run_family(family, stage, dataset, models)

        self.dataset = dataset
        self._models = models
        self._training_report = report
        self._status = ServiceStatus.READY

        if report.failed_families:
            logger.warning(f"Initialization finished with failures in: {report.failed_families}.")
        else:
            logger.info("Initialization complete. All model families trained.")
        return report

    def _run_family(
        self,
        family: str,
        stage: Callable[[PreparedDataset, dict[str, Any]], dict[str, bool]],
        dataset: PreparedDataset,
        models: dict[str, Any],
    ) -> FamilyTrainingResult:
        try:
            trained = stage(dataset, models)
        except Exception as exc:
            logger.exception(f"Training the {family} models failed.")
            return FamilyTrainingResult(family=family, error=str(exc))

        logger.info(f"{family.capitalize()} models trained: {trained}.")
        return FamilyTrainingResult(family=family, models=trained)

    def _has(self, dataset_size: int, key: str) -> bool:
        minimum = self.min_transactions[key]
        if dataset_size < minimum:
            logger.debug(f"Skipping {key}: {dataset_size} transactions, need {minimum}.")
            return False
        return True

    def _train_forecasting(self, dataset: PreparedDataset, models: dict[str, Any]) -> dict[str, bool]:
        n = len(dataset)

        seasonal = SeasonalExpenseModel()
        seasonal.train(dataset.transactions)
        models["seasonal"] = seasonal

        if self._has(n, "linear"):
            linear = SimpleLinearRegression()
            linear.train(list(range(n)), dataset.amounts.tolist())
            models["linear"] = linear

        if self._has(n, "moving_average"):
            moving_average = MovingAverageModel(window=self.moving_average_window)
            moving_average.update(dataset.amounts.tolist())
            models["moving_average"] = moving_average

        return {key: key in models for key in ("seasonal", "linear", "moving_average")}

    def _train_categorization(self, dataset: PreparedDataset, models: dict[str, Any]) -> dict[str, bool]:
        categorized = [t for t in dataset.transactions if t.category]
        if self._has(len(categorized), "naive_bayes"):
            naive_bayes = NaiveBayesClassifier()
            naive_bayes.train(categorized)
            models["naive_bayes"] = naive_bayes

        rule_based = RuleBasedCategorizer()
        rule_based.train(dataset.transactions)
        models["rule_based"] = rule_based

        return {key: key in models for key in ("naive_bayes", "rule_based")}

    def _train_anomaly(self, dataset: PreparedDataset, models: dict[str, Any]) -> dict[str, bool]:
        if self._has(len(dataset), "anomaly"):
            amounts = dataset.absolute_amounts.tolist()

            zscore = ZScoreAnomalyDetector(threshold=self.z_threshold)
            zscore.train(amounts)
            models["zscore"] = zscore

            iqr = IQROutlierDetector(multiplier=self.iqr_multiplier)
            iqr.train(amounts)
            models["iqr"] = iqr

            pattern = SpendingPatternDetector()
            pattern.train(dataset.transactions)
            models["pattern"] = pattern

        return {key: key in models for key in ("zscore", "iqr", "pattern")}

    def _train_budgeting(self, dataset: PreparedDataset, models: dict[str, Any]) -> dict[str, bool]:
        n = len(dataset)
        if self._has(n, "percentile_budget"):
            percentile = PercentileBudgetRecommender(buffer=self.budget_buffer)
            percentile.train(dataset.transactions)
            models["percentile_budget"] = percentile

        if self._has(n, "trend_budget"):
            trend = TrendAwareBudgetRecommender(
                weight_recent=self.trend_weight_recent,
                safety_margin=self.trend_safety_margin,
            )
            trend.train(dataset.transactions)
            models["trend_budget"] = trend

        return {key: key in models for key in ("percentile_budget", "trend_budget")}

    def _train_optimization(self, dataset: PreparedDataset, models: dict[str, Any]) -> dict[str, bool]:
        n = len(dataset)
        if self._has(n, "pattern_optimizer"):
            optimizer = SpendingPatternOptimizer()
            optimizer.train(dataset.transactions)
            models["pattern_optimizer"] = optimizer

        if self._has(n, "comparative"):
            comparative = ComparativeSpendingAnalyzer()
            comparative.train(dataset.transactions, period_days=self.comparison_period_days)
            models["comparative"] = comparative

        return {key: key in models for key in ("pattern_optimizer", "comparative")}

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE: QUERIES
    # -------------------------------------------------------------------------

    def predict_expenses(self, days: int | None = None, start: datetime | None = None) -> PredictionSet:
        """
        Forecasts from every trained forecasting model. Untrained models
        leave their slot as None. Linear predictions continue the transaction
        index: n, n+1, ..., n+days-1.
        """
        self._require_ready("predicting expenses")
        days = int(days if days is not None else get_forecasting_config()["default_horizon_days"])
        predictions = PredictionSet()

        seasonal = self._trained("seasonal")
        if seasonal is not None:
            predictions.seasonal = seasonal.predict_next_days(days, start=start)

        moving_average = self._trained("moving_average")
        if moving_average is not None:
            predictions.moving_average = moving_average.predict(days)

        linear = self._trained("linear")
        if linear is not None:
            n = len(self.dataset)
            predictions.linear = linear.predict(list(range(n, n + days)))

        return predictions

    def categorize_transactions(self, records: Sequence[Any]) -> list[CategorizedTransaction]:
        """
        Rule-based result by default. The Bayes result wins only when its
        confidence is above 0.7 and above the rule-based confidence.
        """
        self._require_ready("categorizing transactions")
        rule_based = self._models.get("rule_based") or RuleBasedCategorizer()
        naive_bayes = self._trained("naive_bayes")

        results = []
        for record in as_records(records):
            description = text_field(record_field(record, "description"))
            best = rule_based.categorize(description)
            method = "rule_based"

            if naive_bayes is not None:
                candidate = naive_bayes.classify(description)
                if candidate.confidence > self.bayes_override_confidence and candidate.confidence > best.confidence:
                    best, method = candidate, "naive_bayes"

            results.append(CategorizedTransaction(
                record=record,
                description=description,
                predicted_category=best.category,
                confidence=best.confidence,
                method=method,
            ))
        return results

    def detect_anomalies(self, records: Sequence[Any]) -> AnomalyReport:
        """
        Uses the pattern detector when trained, then the z-score detector,
        then the IQR detector. With none trained every record comes back
        unflagged under method "none".
        """
        self._require_ready("detecting anomalies")
        records = as_records(records)

        pattern = self._trained("pattern")
        if pattern is not None:
            return AnomalyReport(method="pattern", results=pattern.detect_anomalies(records))

        zscore = self._trained("zscore")
        if zscore is not None:
            return AnomalyReport(method="zscore", results=zscore.detect_transaction_anomalies(records))

        iqr = self._trained("iqr")
        if iqr is not None:
            return AnomalyReport(method="iqr", results=iqr.detect_transaction_outliers(records))

        logger.debug("No anomaly detector trained; returning unflagged results.")
        return AnomalyReport(
            method="none",
            results=[AnomalyResult(record=r, is_anomaly=False, anomaly_score=0.0) for r in records],
        )

    def recommend_budgets(self) -> BudgetRecommendationSet:
        self._require_ready("recommending budgets")
        recommendations = BudgetRecommendationSet()

        percentile = self._trained("percentile_budget")
        if percentile is not None:
            recommendations.standard = percentile.recommend_budgets()

        trend = self._trained("trend_budget")
        if trend is not None:
            recommendations.trend_aware = trend.recommend_budgets()
            recommendations.trend_analysis = trend.get_trend_analysis()

        return recommendations

    def optimize_expenses(self) -> OptimizationReport:
        self._require_ready("optimizing expenses")
        report = OptimizationReport()

        optimizer = self._trained("pattern_optimizer")
        if optimizer is not None:
            report.patterns = optimizer.generate_recommendations()

        comparative = self._trained("comparative")
        if comparative is not None:
            report.comparative = comparative.generate_optimization_suggestions()

        return report

    def generate_savings_plan(self, target_savings: float) -> SavingsPlan:
        """
        Raises:
            NotTrainedError: If the history was too short for the pattern optimizer.
            InvalidInputError: If the target is not positive.
        """
        self._require_ready("generating a savings plan")
        optimizer = self._trained("pattern_optimizer")
        if optimizer is None:
            raise NotTrainedError(SpendingPatternOptimizer.name, "used for savings plans")
        return optimizer.suggest_savings(target_savings)
