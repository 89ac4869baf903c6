"""Test configuration module."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from eol.knowledge_graph.config import (
    GraphAnalysisOptions,
    GraphBuildOptions,
    GraphMergeOptions,
    GraphMergeStrategy,
    KnowledgeGraphConfig,
)
from eol.knowledge_graph.models import KnowledgeType


class TestGraphBuildOptions:
    """Test graph build options."""

    def test_default_config(self):
        """Test default build options."""
        options = GraphBuildOptions()
        assert options.name == "Knowledge Graph"
        assert options.project_ids == []
        assert options.include_relationships is True
        assert options.min_relationship_strength == 0.3
        assert options.detect_implicit_relationships is True
        assert options.min_implicit_similarity == 0.7
        assert options.max_implicit_relationships == 100

    def test_env_override(self, monkeypatch):
        """Test environment variables with the KG_BUILD_ prefix."""
        monkeypatch.setenv("KG_BUILD_MIN_IMPLICIT_SIMILARITY", "0.55")
        monkeypatch.setenv("KG_BUILD_PROJECT_IDS", '["proj1", "proj2"]')
        monkeypatch.setenv("KG_BUILD_KNOWLEDGE_TYPES", '["solution"]')

        options = GraphBuildOptions()

        assert options.min_implicit_similarity == 0.55
        assert options.project_ids == ["proj1", "proj2"]
        assert options.knowledge_types == [KnowledgeType.SOLUTION]

    def test_threshold_validation(self):
        """Test that thresholds must lie in [0, 1]."""
        with pytest.raises(ValidationError):
            GraphBuildOptions(min_implicit_similarity=1.5)
        with pytest.raises(ValidationError):
            GraphBuildOptions(min_relationship_strength=-0.1)

    def test_negative_cap_rejected(self):
        with pytest.raises(ValidationError):
            GraphBuildOptions(max_implicit_relationships=-1)


class TestGraphAnalysisOptions:
    """Test graph analysis options."""

    def test_default_config(self):
        """Test default analysis options."""
        options = GraphAnalysisOptions()
        assert options.top_nodes_count == 5
        assert options.detect_communities is True
        assert options.analyze_knowledge_flow is True
        assert options.generate_insights is True
        assert options.min_relationship_strength == 0.3

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("KG_ANALYSIS_DETECT_COMMUNITIES", "false")

        assert GraphAnalysisOptions().detect_communities is False


class TestGraphMergeOptions:
    """Test graph merge options."""

    def test_default_config(self):
        """Test default merge options."""
        options = GraphMergeOptions()
        assert options.strategy == GraphMergeStrategy.UNION
        assert options.merge_node_metadata is True
        assert options.create_cross_graph_relationships is True
        assert options.min_cross_graph_similarity == 0.7

    def test_strategy_from_env(self, monkeypatch):
        monkeypatch.setenv("KG_MERGE_STRATEGY", "intersection")

        assert GraphMergeOptions().strategy == GraphMergeStrategy.INTERSECTION


class TestKnowledgeGraphConfig:
    """Test main configuration."""

    def test_default_config(self):
        """Test default aggregate configuration."""
        config = KnowledgeGraphConfig()
        assert isinstance(config.build, GraphBuildOptions)
        assert isinstance(config.analysis, GraphAnalysisOptions)
        assert isinstance(config.merge, GraphMergeOptions)

    def test_nested_options_from_env_json(self, monkeypatch):
        """Test nested option sets supplied as JSON with the KG_ prefix."""
        monkeypatch.setenv("KG_ANALYSIS", '{"top_nodes_count": 7}')

        config = KnowledgeGraphConfig()

        assert config.analysis.top_nodes_count == 7
        assert config.build.min_implicit_similarity == 0.7

    def test_unknown_keys_rejected(self, tmp_path):
        """Test that keys no option set reads are refused."""
        config_path = tmp_path / "graph.json"
        config_path.write_text(json.dumps({"debug": True}))

        with pytest.raises(ValidationError):
            KnowledgeGraphConfig.from_file(config_path)

    def test_from_json_file(self, tmp_path):
        """Test loading configuration from JSON."""
        config_path = tmp_path / "graph.json"
        config_path.write_text(
            json.dumps(
                {
                    "build": {"min_implicit_similarity": 0.6, "name": "Payments"},
                    "analysis": {"top_nodes_count": 10},
                }
            )
        )

        config = KnowledgeGraphConfig.from_file(config_path)

        assert config.build.min_implicit_similarity == 0.6
        assert config.build.name == "Payments"
        assert config.analysis.top_nodes_count == 10
        assert config.merge.strategy == GraphMergeStrategy.UNION

    def test_from_yaml_file(self, tmp_path):
        """Test loading configuration from YAML."""
        config_path = tmp_path / "graph.yaml"
        config_path.write_text(
            "build:\n"
            "  detect_implicit_relationships: false\n"
            "merge:\n"
            "  strategy: first_priority\n"
        )

        config = KnowledgeGraphConfig.from_file(config_path)

        assert config.build.detect_implicit_relationships is False
        assert config.merge.strategy == GraphMergeStrategy.FIRST_PRIORITY

    def test_empty_yaml_file(self, tmp_path):
        config_path = tmp_path / "empty.yml"
        config_path.write_text("")

        config = KnowledgeGraphConfig.from_file(config_path)

        assert config.analysis.top_nodes_count == 5

    def test_invalid_value_in_file(self, tmp_path):
        config_path = tmp_path / "graph.json"
        config_path.write_text(json.dumps({"analysis": {"min_relationship_strength": 2}}))

        with pytest.raises(ValidationError):
            KnowledgeGraphConfig.from_file(config_path)

    def test_unsupported_format(self, tmp_path):
        """Test that unknown file extensions are rejected."""
        config_path = tmp_path / "graph.toml"
        config_path.write_text("[build]\n")

        with pytest.raises(ValueError, match="Unsupported config format: .toml"):
            KnowledgeGraphConfig.from_file(config_path)

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            KnowledgeGraphConfig.from_file(Path("/nonexistent/graph.yaml"))
