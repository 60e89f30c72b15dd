"""
Elastic property estimation for rock samples.

Looks up base properties of the rock type, scales the moduli with the
sample's density (or takes Young's modulus and Poisson ratio from a prior
tri-axial test), then derives theoretical P and S velocities.
"""

import logging
from typing import NamedTuple, Optional, Tuple

import numpy as np

from models.material import Material, ElasticProperties
from models.simulation_config import TriaxialResult

logger = logging.getLogger(__name__)


class RockProperties(NamedTuple):
    """Base properties of a rock type; moduli in MPa, density in kg/m^3."""
    young_modulus: float
    poisson_ratio: float
    bulk_modulus: float
    shear_modulus: float
    attenuation: float
    reference_density: float


ROCK_TABLE = {
    'limestone': RockProperties(50000, 0.28, 40000, 20000, 0.08, 2700),
    'calcite': RockProperties(52000, 0.31, 45000, 19000, 0.07, 2710),
    'sandstone': RockProperties(20000, 0.25, 12000, 8000, 0.15, 2350),
    'quartz': RockProperties(95000, 0.08, 37000, 44000, 0.02, 2650),
    'shale': RockProperties(10000, 0.32, 8000, 4000, 0.25, 2400),
    'clay': RockProperties(5000, 0.35, 6000, 2000, 0.30, 2200),
    'granite': RockProperties(70000, 0.25, 45000, 28000, 0.05, 2700),
    'basalt': RockProperties(80000, 0.28, 55000, 30000, 0.06, 3000),
    'gneiss': RockProperties(60000, 0.26, 40000, 25000, 0.08, 2750),
    'marble': RockProperties(55000, 0.27, 38000, 22000, 0.07, 2700),
    'quartzite': RockProperties(90000, 0.12, 35000, 40000, 0.04, 2650),
    'dolomite': RockProperties(53000, 0.29, 42000, 21000, 0.09, 2850),
    'siltstone': RockProperties(15000, 0.30, 10000, 6000, 0.20, 2400),
    'conglomerate': RockProperties(25000, 0.27, 18000, 10000, 0.18, 2500),
    'default': RockProperties(30000, 0.25, 25000, 12000, 0.15, 2500),
}

# Density scaling exponents per modulus
YOUNG_EXPONENT = 1.3
POISSON_EXPONENT = 0.1
BULK_EXPONENT = 1.2
SHEAR_EXPONENT = 1.4

PRESSURE_COEFFICIENT = 0.002  # per MPa

POISSON_RANGE = (0.05, 0.45)
VP_RANGE = (1500.0, 8000.0)
VS_RANGE = (600.0, 4500.0)

MPA_TO_PA = 1.0e6


class MaterialValidationError(ValueError):
    """Raised when material inputs cannot produce elastic properties."""


def lookup_rock_type(name: str) -> Tuple[str, RockProperties]:
    """
    Match a material name against the rock table.

    Case-insensitive substring match; the longest matching key wins so
    "Quartzite" maps to quartzite rather than quartz. Unmatched names map
    to 'default'.
    """
    lowered = (name or '').lower()
    matches = [key for key in ROCK_TABLE if key != 'default' and key in lowered]
    if not matches:
        logger.debug(f"No rock type matches {name!r}, using default properties")
        return 'default', ROCK_TABLE['default']
    key = max(matches, key=len)
    return key, ROCK_TABLE[key]


class MaterialPropertyEstimator:
    """
    Computes ElasticProperties for a material.

    Example:
        >>> estimator = MaterialPropertyEstimator()
        >>> props = estimator.estimate(Material("Granite", 2650.0, 10.0))
        >>> round(props.vp_vs_ratio, 2)
        1.72
    """

    def estimate(self, material: Material,
                 triaxial: Optional[TriaxialResult] = None) -> ElasticProperties:
        """
        Estimate elastic properties.

        Args:
            material: Sample material (name, density, confining pressure)
            triaxial: Prior tri-axial result; its Young's modulus and Poisson
                      ratio replace density scaling when both are present

        Returns:
            ElasticProperties with moduli in MPa and velocities in m/s

        Raises:
            MaterialValidationError: If density is not positive
        """
        density = material.density
        if not density > 0:
            raise MaterialValidationError(
                f"Density must be positive, got {density} kg/m^3"
            )

        rock_type, base = lookup_rock_type(material.name)
        density_ratio = density / base.reference_density

        use_triaxial = triaxial is not None and triaxial.has_elastic_moduli
        if use_triaxial:
            young = float(triaxial.young_modulus)
            poisson = float(np.clip(triaxial.poisson_ratio, *POISSON_RANGE))
            bulk = young / (3.0 * (1.0 - 2.0 * poisson))
            shear = young / (2.0 * (1.0 + poisson))
            logger.info(
                f"Using tri-axial moduli: E={young:.0f} MPa, nu={poisson:.3f}"
            )
        else:
            young = base.young_modulus * density_ratio ** YOUNG_EXPONENT
            poisson = float(np.clip(
                base.poisson_ratio * density_ratio ** POISSON_EXPONENT, *POISSON_RANGE
            ))
            bulk = base.bulk_modulus * density_ratio ** BULK_EXPONENT
            shear = base.shear_modulus * density_ratio ** SHEAR_EXPONENT

        attenuation = base.attenuation / np.sqrt(density_ratio)

        pressure_factor = 1.0 + PRESSURE_COEFFICIENT * material.confining_pressure
        vp_raw = np.sqrt((bulk + 4.0 * shear / 3.0) * MPA_TO_PA / density) * pressure_factor
        vs_raw = np.sqrt(shear * MPA_TO_PA / density) * pressure_factor
        vp_vs_ratio = vp_raw / vs_raw

        vp = float(np.clip(vp_raw, *VP_RANGE))
        vs = float(np.clip(vs_raw, *VS_RANGE))
        if vp != vp_raw or vs != vs_raw:
            logger.warning(
                f"Theoretical velocities clamped: Vp {vp_raw:.0f}->{vp:.0f}, "
                f"Vs {vs_raw:.0f}->{vs:.0f} m/s"
            )

        props = ElasticProperties(
            rock_type=rock_type,
            density=float(density),
            young_modulus=float(young),
            poisson_ratio=poisson,
            bulk_modulus=float(bulk),
            shear_modulus=float(shear),
            attenuation=float(attenuation),
            p_wave_velocity=vp,
            s_wave_velocity=vs,
            vp_vs_ratio=float(vp_vs_ratio),
            from_triaxial=use_triaxial,
        )
        logger.info(
            f"{material.name} ({rock_type}): Vp={vp:.0f} m/s, Vs={vs:.0f} m/s, "
            f"Vp/Vs={vp_vs_ratio:.3f}, K={bulk:.0f} MPa, G={shear:.0f} MPa"
        )
        return props
