from .settings_handler import QuerySettingsHandler, pluck_kwargs_from
from .settings_dict import QueryOptions
