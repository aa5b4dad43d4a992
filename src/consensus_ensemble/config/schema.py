"""
Pydantic configuration schemas for ensemble runs
"""
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from typing import List, Optional, Literal
from pathlib import Path

from ..consensus.functions import ConsensusMethod
from ..validation.indices import INTERNAL_INDICES


class EnsembleConfig(BaseModel):
    """Ensemble generation configuration"""
    model_config = ConfigDict(extra="forbid")

    nk: List[int] = Field(
        default=[2, 3, 4],
        description="Candidate numbers of clusters"
    )
    reps: int = Field(
        default=10,
        ge=1,
        description="Subsampling replicates per algorithm and k"
    )
    algorithms: List[str] = Field(
        default=["hc", "km"],
        description="Base clustering algorithms (registered ids)"
    )
    p_item: float = Field(
        default=0.8,
        gt=0.0,
        le=1.0,
        description="Fraction of samples drawn per replicate"
    )
    distance: str = Field(
        default="euclidean",
        description="Distance for distance-based algorithms (pdist name, spearman, pearson)"
    )
    seed: int = Field(
        default=1,
        ge=0,
        description="Seed for subsampling and algorithm initialisation"
    )
    cache_dir: Optional[Path] = Field(
        default=None,
        description="Directory for the on-disk ensemble cache"
    )

    @field_validator("nk")
    @classmethod
    def validate_nk(cls, v: List[int]) -> List[int]:
        """Cluster counts must be distinct and at least 1"""
        if not v:
            raise ValueError("nk must contain at least one value")
        if any(k < 1 for k in v):
            raise ValueError(f"Invalid cluster counts: {v}")
        if len(set(v)) != len(v):
            raise ValueError(f"Duplicate cluster counts: {v}")
        return v

    @field_validator("algorithms")
    @classmethod
    def validate_algorithms(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("At least one algorithm is required")
        if len(set(v)) != len(v):
            raise ValueError(f"Duplicate algorithms: {v}")
        return v


class ImputeConfig(BaseModel):
    """Missing assignment imputation configuration"""
    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(
        default=True,
        description="Impute missing assignments before consensus"
    )
    n_neighbors: int = Field(
        default=5,
        ge=1,
        description="Neighbours consulted by KNN imputation"
    )
    min_agreement: float = Field(
        default=0.5,
        ge=0.0,
        lt=1.0,
        description="Neighbour agreement required to accept a KNN label"
    )


class ConsensusConfig(BaseModel):
    """Consensus function configuration"""
    model_config = ConfigDict(extra="forbid")

    methods: List[ConsensusMethod] = Field(
        default=[ConsensusMethod.MAJORITY, ConsensusMethod.CSPA, ConsensusMethod.KMODES],
        description="Consensus functions to run at every k"
    )
    lce_similarity: Literal["cts", "srs", "asrs"] = Field(
        default="cts",
        description="LCE similarity variant"
    )
    lce_decay: float = Field(
        default=0.8,
        gt=0.0,
        le=1.0,
        description="LCE decay factor"
    )
    lce_iterations: int = Field(
        default=10,
        ge=1,
        description="SimRank iterations for the srs variant"
    )
    max_iter: int = Field(
        default=100,
        ge=1,
        description="Iteration limit for k-modes and LCA"
    )
    second_level: bool = Field(
        default=False,
        description="Run a second-level consensus over the trimmed ensemble"
    )

    @field_validator("methods")
    @classmethod
    def validate_methods(cls, v: List[ConsensusMethod]) -> List[ConsensusMethod]:
        if not v:
            raise ValueError("At least one consensus method is required")
        return v


class EvaluateConfig(BaseModel):
    """Evaluation, trimming and reweighing configuration"""
    model_config = ConfigDict(extra="forbid")

    indices: List[str] = Field(
        default=["calinski_harabasz", "dunn", "pbm", "davies_bouldin", "silhouette", "compactness"],
        description="Internal validity indices used for ranking"
    )
    pac_lower: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="PAC lower threshold"
    )
    pac_upper: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="PAC upper threshold"
    )
    trim: bool = Field(
        default=False,
        description="Trim members ranked below the quantile"
    )
    quantile: float = Field(
        default=0.75,
        ge=0.0,
        le=1.0,
        description="Sum-rank quantile below which members are trimmed"
    )
    reweigh: bool = Field(
        default=False,
        description="Replicate kept members in proportion to their rank"
    )
    n_replicates: int = Field(
        default=100,
        ge=1,
        description="Total copies across members when reweighing"
    )

    @field_validator("indices")
    @classmethod
    def validate_indices(cls, v: List[str]) -> List[str]:
        invalid = set(v) - set(INTERNAL_INDICES)
        if invalid:
            raise ValueError(f"Invalid indices: {sorted(invalid)}. Valid: {sorted(INTERNAL_INDICES)}")
        return v

    @model_validator(mode="after")
    def validate_thresholds(self) -> "EvaluateConfig":
        if self.pac_lower >= self.pac_upper:
            raise ValueError(
                f"pac_lower ({self.pac_lower}) must be below pac_upper ({self.pac_upper})"
            )
        return self


class AppConfig(BaseModel):
    """Root configuration schema"""
    model_config = ConfigDict(extra="forbid")

    verbose: bool = Field(
        default=True,
        description="Verbose output"
    )

    ensemble: EnsembleConfig = Field(default_factory=EnsembleConfig)
    impute: ImputeConfig = Field(default_factory=ImputeConfig)
    consensus: ConsensusConfig = Field(default_factory=ConsensusConfig)
    evaluate: EvaluateConfig = Field(default_factory=EvaluateConfig)

    output_dir: Path = Field(
        default=Path("outputs"),
        description="Output directory"
    )

    @model_validator(mode="after")
    def validate_lca_needs_imputation(self) -> "AppConfig":
        """LCE and LCA need complete partitions"""
        needs_complete = {ConsensusMethod.LCE, ConsensusMethod.LCA}
        if not self.impute.enabled and needs_complete & set(self.consensus.methods):
            raise ValueError("Consensus methods 'lce' and 'lca' require impute.enabled = true")
        return self
