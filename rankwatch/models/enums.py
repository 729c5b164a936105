from enum import Enum

# Reserved subscription target for the aggregate top view
TOP10 = "top10"


class ChannelKind(str, Enum):
    DIRECT = "direct"
    GROUP = "group"


class SubscribeResult(str, Enum):
    SUBSCRIBED = "subscribed"
    ALREADY_SUBSCRIBED = "already_subscribed"


class UnsubscribeResult(str, Enum):
    UNSUBSCRIBED = "unsubscribed"
    NOT_SUBSCRIBED = "not_subscribed"


class ChangeKind(str, Enum):
    RANK_IMPROVED = "rank_improved"
    RANK_WORSENED = "rank_worsened"
    SCORE_IMPROVED = "score_improved"
    SCORE_DECREASED = "score_decreased"
    FIRST_OBSERVED = "first_observed"
    TEAM_DISAPPEARED = "team_disappeared"
    ENTERED_TOP10 = "entered_top10"
    EXITED_TOP10 = "exited_top10"
    TOP10_SCORE_IMPROVED = "top10_score_improved"
