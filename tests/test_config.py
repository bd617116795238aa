"""
Tests for svelte_image.config

Test Coverage:
- ImageConfig defaults, validation and from_mapping()
- resolve_node_options(): per-node attribute overrides
"""
from pathlib import Path

import pytest

from svelte_image.config import ImageConfig, TraceOptions, WebpOptions, resolve_node_options
from svelte_image.content import parse_image_nodes
from svelte_image.errors import ConfigError, UnresolvableValueError


def node_for(markup):
    return parse_image_nodes(markup, ImageConfig())[0]


class TestImageConfig:
    def test_defaults(self):
        config = ImageConfig()

        assert config.sizes == (400, 800, 1200)
        assert config.breakpoints == (375, 768, 1024)
        assert config.img_tag_extensions == ("jpg", "jpeg", "png")
        assert config.component_extensions == ()
        assert config.placeholder == "trace"
        assert config.webp_options == WebpOptions(quality=75, lossless=False)
        assert config.trace.color == "#002fa7"

    def test_lists_and_strings_are_normalized(self):
        config = ImageConfig(sizes=[300, 600], public_dir="public", placeholder=False)

        assert config.sizes == (300, 600)
        assert config.public_dir == Path("public")
        assert config.placeholder is None

    @pytest.mark.parametrize(
        "changes",
        [
            {"placeholder": "pixelate"},
            {"sizes": ()},
            {"sizes": (0, 400)},
            {"quality": 0},
            {"compression_level": 12},
            {"tag_name": ""},
        ],
    )
    def test_invalid_values_raise(self, changes):
        with pytest.raises(ConfigError):
            ImageConfig(**changes)

    def test_from_mapping_accepts_camel_case_and_nested_options(self):
        # Arrange
        values = {
            "optimizeAll": False,
            "tagName": "Picture",
            "webpOptions": {"quality": 60, "lossless": True, "force": True},
            "trace": {"threshold": 90},
            "retina": False,
        }

        # Act
        config = ImageConfig.from_mapping(values)

        # Assert
        assert config.optimize_all is False
        assert config.tag_name == "Picture"
        assert config.webp_options == WebpOptions(quality=60, lossless=True)
        assert config.trace == TraceOptions(threshold=90)
        assert config.retina is False

    def test_from_mapping_rejects_unknown_keys(self):
        with pytest.raises(ConfigError):
            ImageConfig.from_mapping({"offset": 3})

    def test_replace_returns_copy(self):
        config = ImageConfig()

        updated = config.replace(quality=90)

        assert updated.quality == 90
        assert config.quality == 70


class TestResolveNodeOptions:
    def test_defaults_without_overrides(self):
        options = resolve_node_options(node_for('<Image src="a.jpg" />'), ImageConfig())

        assert options.sizes == (400, 800, 1200)
        assert options.breakpoints == (375, 768, 1024)
        assert options.placeholder == "trace"
        assert options.ratio is True
        assert options.width is None

    def test_width_constrains_sizes_and_disables_ratio(self):
        options = resolve_node_options(
            node_for('<Image src="a.jpg" width="300px" sizes="[100]" />'), ImageConfig()
        )

        assert options.sizes == (300,)
        assert options.width == 300
        assert options.ratio is False

    def test_sizes_from_expression_and_breakpoints_from_json(self):
        node = node_for('<Image src="a.jpg" sizes={[200, 600]} breakpoints="[320, 900]" />')

        options = resolve_node_options(node, ImageConfig())

        assert options.sizes == (200, 600)
        assert options.breakpoints == (320, 900)

    @pytest.mark.parametrize(
        "attribute, expected",
        [
            ('placeholder="blur"', "blur"),
            ("placeholder", "trace"),
            ('placeholder=""', None),
            ("placeholder={false}", None),
            ('placeholder="false"', None),
        ],
    )
    def test_placeholder_override(self, attribute, expected):
        node = node_for(f'<Image src="a.jpg" {attribute} />')

        assert resolve_node_options(node, ImageConfig()).placeholder == expected

    @pytest.mark.parametrize(
        "attribute, expected",
        [
            ("ratio", True),
            ('ratio=""', True),
            ('ratio="false"', False),
            ("ratio={false}", False),
        ],
    )
    def test_ratio_override(self, attribute, expected):
        node = node_for(f'<Image src="a.jpg" {attribute} />')

        assert resolve_node_options(node, ImageConfig(ratio=not expected)).ratio is expected

    @pytest.mark.parametrize(
        "markup",
        [
            '<Image src="a.jpg" sizes={widths} />',
            '<Image src="a.jpg" sizes="400,800" />',
            '<Image src="a.jpg" width="auto" />',
            '<Image src="a.jpg" placeholder="pixelate" />',
        ],
    )
    def test_unresolvable_values_raise(self, markup):
        with pytest.raises(UnresolvableValueError):
            resolve_node_options(node_for(markup), ImageConfig())
