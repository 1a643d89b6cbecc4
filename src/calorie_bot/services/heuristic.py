"""Offline keyword-table estimator used when the reasoning service fails."""

import logging
from dataclasses import dataclass

from calorie_bot.domain.analysis import RawAnalysis, RawFoodItem

GENERIC_CALORIES = 250
GENERIC_PORTION = "standard portion"
HEURISTIC_CONFIDENCE = "medium (dish table)"
HEURISTIC_REASONING = "Estimated from the table of popular dishes"
NOT_FOOD_MESSAGE = "The message is not about food or drinks."

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DishEstimate:
    """Canned estimate for a known dish."""

    name: str
    portion: str
    calories: int


# Order matters: the first keyword contained in the text wins.
DISH_RULES: tuple[tuple[str, DishEstimate], ...] = (
    ("борщ", DishEstimate("борщ", "300мл", 120)),
    ("суп", DishEstimate("суп", "300мл", 100)),
    ("шаурма", DishEstimate("шаурма", "1шт", 450)),
    ("бургер", DishEstimate("бургер", "1шт", 540)),
    ("пицца", DishEstimate("пицца", "1 кусок", 285)),
    ("плов", DishEstimate("плов", "200г", 350)),
    ("каша", DishEstimate("каша", "200г", 150)),
    ("салат", DishEstimate("салат", "150г", 80)),
    ("котлета", DishEstimate("котлета", "1шт", 250)),
    ("омлет", DishEstimate("омлет", "2 яйца", 200)),
    ("макароны", DishEstimate("макароны", "200г", 280)),
    ("рис", DishEstimate("рис", "200г", 260)),
    ("курица", DishEstimate("курица", "150г", 248)),
    ("мясо", DishEstimate("мясо", "150г", 280)),
    ("рыба", DishEstimate("рыба", "150г", 206)),
    ("яйцо", DishEstimate("яйца", "2шт", 140)),
    ("хлеб", DishEstimate("хлеб", "2 куска", 160)),
    ("кофе", DishEstimate("кофе", "200мл", 25)),
    ("чай", DishEstimate("чай", "200мл", 5)),
    ("молоко", DishEstimate("молоко", "200мл", 120)),
    ("яблоко", DishEstimate("яблоко", "1шт", 95)),
    ("банан", DishEstimate("банан", "1шт", 105)),
    ("картошка", DishEstimate("картофель", "200г", 160)),
    ("картофель", DishEstimate("картофель", "200г", 160)),
)

# Only consulted when no single keyword matched.
COMBO_RULES: tuple[tuple[tuple[str, ...], DishEstimate], ...] = (
    (("макароны", "сыр"), DishEstimate("макароны с сыром", "250г", 350)),
    (("рис", "курица"), DishEstimate("рис с курицей", "300г", 400)),
)

NOT_FOOD_KEYWORDS: tuple[str, ...] = (
    "привет",
    "здравствуй",
    "как дела",
    "спасибо",
    "пока",
    "погода",
    "время",
    "работа",
    "учеба",
)


@dataclass
class HeuristicEstimator:
    """Deterministic single-item estimator over ordered keyword rules."""

    dish_rules: tuple[tuple[str, DishEstimate], ...] = DISH_RULES
    combo_rules: tuple[tuple[tuple[str, ...], DishEstimate], ...] = COMBO_RULES
    not_food_keywords: tuple[str, ...] = NOT_FOOD_KEYWORDS
    generic_calories: int = GENERIC_CALORIES

    def estimate(self, description: str) -> RawAnalysis:
        """Return a one-item estimate, or a no-food verdict for chatter."""
        text = description.lower().strip()
        # Dish keywords win over chatter, so "спасибо, съел борщ" is still food.
        dish = self._match(text)
        if dish is not None:
            _logger.info(
                "Heuristic matched dish=%s calories=%s", dish.name, dish.calories
            )
            return _single_item(dish)

        if any(keyword in text for keyword in self.not_food_keywords):
            _logger.info("Heuristic classified input as not food")
            return RawAnalysis(no_food_detected=True, message=NOT_FOOD_MESSAGE)

        _logger.info(
            "Heuristic using generic estimate of %s kcal", self.generic_calories
        )
        return _single_item(
            DishEstimate(description.strip(), GENERIC_PORTION, self.generic_calories)
        )

    def _match(self, text: str) -> DishEstimate | None:
        for keyword, dish in self.dish_rules:
            if keyword in text:
                return dish
        for keywords, dish in self.combo_rules:
            if all(keyword in text for keyword in keywords):
                return dish
        return None


def _single_item(dish: DishEstimate) -> RawAnalysis:
    return RawAnalysis(
        items=[
            RawFoodItem(name=dish.name, portion=dish.portion, calories=dish.calories)
        ],
        total_calories=dish.calories,
        confidence=HEURISTIC_CONFIDENCE,
        reasoning=HEURISTIC_REASONING,
    )
