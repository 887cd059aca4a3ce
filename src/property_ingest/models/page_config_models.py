"""Page configuration models for the legacy (v1) and current (v2) shapes.

Field names are snake_case in Python and camelCase on disk; always dump with
``by_alias=True`` when writing JSON for the renderer or the database.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


class ThemeConfig(_CamelModel):
    """Site-wide visual theme. Unknown keys from older editors are kept."""

    font_family: str = "Inter"
    heading_font_family: str = "Inter"
    heading_font_size: float = 1
    heading_letter_spacing: float = 0
    title_case: str = "sentence"
    primary_color: str = "#000000"
    secondary_color: str = "#666666"
    background_color: str = "#ffffff"
    text_color: str = "#000000"
    border_radius: str = "md"
    cta_type: str = "none"
    cta_value: str = ""
    animation_style: str = "none"
    cursor_style: str = "none"


class LoaderConfig(_CamelModel):
    """Page loader settings."""

    type: str = "none"
    color_scheme: str = "light"


class SiteSettings(_CamelModel):
    theme: ThemeConfig = Field(default_factory=ThemeConfig)
    loader: LoaderConfig = Field(default_factory=LoaderConfig)
    meta: dict[str, Any] | None = Field(
        default=None, description="SEO title/description carried over from v1"
    )


class SectionSettings(_CamelModel):
    """Layout and style of one section; its content lives in siteContent."""

    id: str
    type: str
    variant: str | None = None
    color_scheme: str | None = None


class PageConfig(_CamelModel):
    """Current (v2) page configuration.

    ``site_content`` is keyed by section id. ``metadata`` holds generation
    diagnostics and is dropped before the configuration is stored.
    """

    version: Literal[2] = Field(default=2, alias="_version")
    site_settings: SiteSettings = Field(default_factory=SiteSettings)
    section_settings: list[SectionSettings] = Field(default_factory=list)
    site_content: dict[str, dict[str, Any]] = Field(default_factory=dict)
    metadata: dict[str, Any] | None = Field(default=None, alias="_metadata")

    def section_ids(self) -> list[str]:
        return [section.id for section in self.section_settings]


class LegacySection(_CamelModel):
    """v1 section: settings and content in one object."""

    id: str
    type: str
    variant: str | None = None
    color_scheme: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class LegacyPageConfig(_CamelModel):
    """Legacy (v1) page configuration still read by the editor UI."""

    theme: ThemeConfig = Field(default_factory=ThemeConfig)
    sections: list[LegacySection] = Field(default_factory=list)
    loader: LoaderConfig = Field(default_factory=LoaderConfig)
    meta: dict[str, Any] | None = None
