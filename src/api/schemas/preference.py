"""Pydantic schemas for notification preferences."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from domain.entities.notification import ChannelPreferences, NotificationType


class ChannelPreferencesSchema(BaseModel):
    """Stored channel flags for one notification type."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    push: bool
    email: bool
    sms: bool
    in_app: bool

    @classmethod
    def from_entity(cls, prefs: ChannelPreferences) -> "ChannelPreferencesSchema":
        return cls(push=prefs.push, email=prefs.email, sms=prefs.sms, in_app=prefs.in_app)


class ChannelPreferencesPatch(BaseModel):
    """Merge-patch: omitted or null fields keep their stored value."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    push: bool | None = None
    email: bool | None = None
    sms: bool | None = None
    in_app: bool | None = None

    def as_patch(self) -> dict[str, bool | None]:
        return self.model_dump(by_alias=False, exclude_none=True)


# ``{type: {push, email, sms, inApp}}`` for every notification type.
PreferenceMap = dict[str, ChannelPreferencesSchema]


def to_preference_map(prefs: dict[NotificationType, ChannelPreferences]) -> PreferenceMap:
    return {t.value: ChannelPreferencesSchema.from_entity(p) for t, p in prefs.items()}
