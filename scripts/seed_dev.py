import logging

from quotadraw.db.engine import get_sessionmaker, make_engine
from quotadraw.draw import CampaignStore
from quotadraw.logging_config import configure_logging
from quotadraw.models import Base, GameType
from quotadraw.workflows import create_campaign, replace_outcomes

logger = logging.getLogger(__name__)

WHEEL_SECTIONS = [
    {"label": "$100", "order": 0, "amount": 100, "max_wins": 2, "color": "#f97316"},
    {"label": "Try again", "order": 1, "color": "#64748b"},
    {"label": "$500", "order": 2, "amount": 500, "max_wins": 1, "color": "#22c55e"},
    {"label": "Sticker", "order": 3, "color": "#3b82f6"},
]

DIE_FACES = [
    {"label": "Free coffee", "order": 0, "amount": 5, "max_wins": 10},
    {"label": "No prize", "order": 1},
    {"label": "Pen", "order": 2, "amount": 2, "max_wins": 20},
    {"label": "No prize", "order": 3},
    {"label": "Voucher", "order": 4, "amount": 25, "max_wins": 3},
    {"label": "No prize", "order": 5},
]


def main() -> None:
    """Recreate the development schema and seed one campaign per game type."""
    configure_logging()
    engine = make_engine()

    # drop_all orders tables by foreign key dependency.
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    store = CampaignStore(get_sessionmaker(engine))

    with store.transaction() as session:
        wheel = create_campaign(
            session,
            name="Launch wheel",
            game_type=GameType.WHEEL,
            total_winners=3,
            total_amount=700,
        )
        replace_outcomes(session, wheel.id, WHEEL_SECTIONS)

        dice = create_campaign(
            session,
            name="Lucky die",
            game_type=GameType.DICE,
            total_winners=33,
        )
        replace_outcomes(session, dice.id, DIE_FACES)

        three_dice = create_campaign(
            session,
            name="Triple roll",
            game_type=GameType.THREE_DICE,
            total_winners=99,
        )
        for slot in range(GameType.THREE_DICE.picks_per_draw):
            replace_outcomes(session, three_dice.id, DIE_FACES, slot=slot)

    logger.info("Seeded campaigns: wheel=%s dice=%s three_dice=%s", wheel.id, dice.id, three_dice.id)


if __name__ == "__main__":
    main()
