import numpy as np

from surfgrid.errors import ConfigurationError
from surfgrid.util._type import Self, Vector3Like, as_vector3

__all__ = ["Transform3D"]


class Transform3D:
    """
    Rigid transformation ``x_global = R @ x_local + t``.

    A bin utility carrying a transform bins positions in its local frame:
    global positions go through :meth:`apply_inverse` before the binning
    coordinates are extracted, and local bin centers go through
    :meth:`apply` to come back to the global frame.
    """

    def __init__(self, rotation: np.ndarray | None = None, translation: Vector3Like | None = None,
                 orthonormal_tol: float = 1e-9):
        """
        Parameters
        ----------
        rotation : array_like or None, optional
            3x3 orthonormal matrix with determinant +1. Identity if ``None``.
        translation : array_like or None, optional
            Translation vector. Zero if ``None``.
        orthonormal_tol : float, optional
            Tolerance used when validating ``rotation``.
        """
        if rotation is None:
            rot = np.eye(3)
        else:
            rot = np.asarray(rotation, dtype=float)
            if rot.shape != (3, 3) or not np.all(np.isfinite(rot)):
                raise ConfigurationError(f"rotation must be a finite 3x3 matrix, got shape {rot.shape}")
            if not np.allclose(rot @ rot.T, np.eye(3), atol=orthonormal_tol) or np.linalg.det(rot) < 0:
                raise ConfigurationError("rotation must be a proper orthonormal matrix")
        self.rotation = rot
        self.translation = np.zeros(3) if translation is None else as_vector3(translation, "translation")

    @classmethod
    def identity(cls) -> Self:
        return cls()

    @classmethod
    def from_translation(cls, translation: Vector3Like) -> Self:
        return cls(translation=translation)

    @classmethod
    def from_rotation_z(cls, angle: float, translation: Vector3Like | None = None) -> Self:
        """Rotation by ``angle`` (radians) around the global z axis."""
        c, s = np.cos(angle), np.sin(angle)
        rot = np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])
        return cls(rot, translation)

    @classmethod
    def from_axis_angle(cls, axis: Vector3Like, angle: float, translation: Vector3Like | None = None) -> Self:
        """Rotation by ``angle`` around ``axis`` (Rodrigues' formula)."""
        a = as_vector3(axis, "axis")
        norm = np.linalg.norm(a)
        if norm == 0:
            raise ConfigurationError("rotation axis must be non-zero")
        kx, ky, kz = a / norm
        k = np.array([[0.0, -kz, ky], [kz, 0.0, -kx], [-ky, kx, 0.0]])
        rot = np.eye(3) + np.sin(angle) * k + (1 - np.cos(angle)) * (k @ k)
        return cls(rot, translation)

    @property
    def matrix(self) -> np.ndarray:
        """4x4 homogeneous matrix."""
        m = np.eye(4)
        m[:3, :3] = self.rotation
        m[:3, 3] = self.translation
        return m

    def is_identity(self) -> bool:
        return bool(np.array_equal(self.rotation, np.eye(3)) and not np.any(self.translation))

    def apply(self, points: np.ndarray) -> np.ndarray:
        """Local -> global for a ``(3,)`` point or ``(N, 3)`` array."""
        pts = np.asarray(points, dtype=float)
        return pts @ self.rotation.T + self.translation

    def apply_inverse(self, points: np.ndarray) -> np.ndarray:
        """Global -> local for a ``(3,)`` point or ``(N, 3)`` array."""
        pts = np.asarray(points, dtype=float)
        return (pts - self.translation) @ self.rotation

    def inverse(self) -> "Transform3D":
        return Transform3D(self.rotation.T, -self.translation @ self.rotation)

    def __matmul__(self, other: "Transform3D") -> "Transform3D":
        if not isinstance(other, Transform3D):
            return NotImplemented
        return Transform3D(self.rotation @ other.rotation, self.rotation @ other.translation + self.translation)

    def __repr__(self):
        if self.is_identity():
            return "Transform3D(identity)"
        return f"Transform3D(rotation={self.rotation.tolist()}, translation={self.translation.tolist()})"
