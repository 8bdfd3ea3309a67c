import logging
import os
import tempfile
import threading
from math import pi
from unittest import TestCase, mock

import numpy as np
from numpy.testing import assert_allclose as numpy_allclose

from ssection.core.analysis import SectionAnalysis
from ssection.core.config import Settings
from ssection.core.errors import (
    InputError, NoAreaError, SurfaceConstructionError, SurfaceTimeoutError,
    TrackingError
)
from ssection.core.logger_mixin import LoggerMixin
from ssection.core.postprocessing.results import (
    LengthUnit, QuantityKind, ResultTable, convert
)
from ssection.core.postprocessing.visualization import (
    RecordingSink, bending_stress
)
from ssection.core.preprocessing.geometry.objects import (
    Boundary, Containment, Curve
)
from ssection.core.preprocessing.geometry.operation import (
    SurfaceBuilder, bounding_box, box_contains, point_in_polygon, sample,
    sample_count, triangulate
)
from ssection.core.preprocessing.loads import LoadCase
from ssection.core.preprocessing.material import MaterialCatalog
from ssection.core.preprocessing.section import Section
from ssection.core.preprocessing.validation import (
    BoundaryError, BoundaryValidator
)
from ssection.core.solution.integrator import RegionIntegrator
from ssection.core.solution.properties import (
    SectionProperties, derive_properties, principal_moments
)
from ssection.core.solution.utilization import UtilizationCalculator
from ssection.core.tracking import (
    ChangeTracker, CurveDocument, GeometryFingerprint, ManualScheduler,
    PollScheduler, TrackerState
)
from ssection.core.utils import parse_number


def assert_allclose(actual, desired, err_msg='', rtol=1e-7, atol=1e-10):
    numpy_allclose(actual, desired, err_msg=err_msg, atol=atol, rtol=rtol)


def rectangle(width, height, x0=0.0, y0=0.0):
    return [(x0, y0), (x0 + width, y0), (x0 + width, y0 + height),
            (x0, y0 + height), (x0, y0)]


def rectangle_section(width, height, x0=0.0, y0=0.0, hollows=()):
    outline = Boundary(rectangle(width, height, x0, y0))
    return Section(outline, [Boundary(h) for h in hollows])


def stalled_difference(release):
    """Blocks the boolean difference until ``release`` is set."""
    return mock.patch.object(SurfaceBuilder, '_difference',
                             side_effect=lambda: release.wait(5.0))


def make_properties(**overrides):
    values = dict(
        area=20000.0, centroid_x=50.0, centroid_y=100.0,
        ixx=1e5, iyy=1e5, ixy=0.0, polar=2e5, i1=1e5, i2=1e5,
        principal_angle=0.0, wx=1000.0, wy=1000.0, rx=1.0, ry=1.0,
        x_max=50.0, y_max=100.0, outline_length=600.0, depth=1000.0,
        density=None, mass=0.0, mass_moment_x=0.0, mass_moment_y=0.0,
        method='direct',
    )
    values.update(overrides)
    return SectionProperties(**values)


class TestCurve(TestCase):

    def test_closed(self):
        self.assertTrue(Curve(rectangle(4, 2)).is_closed())
        self.assertFalse(Curve(rectangle(4, 2)[:-1]).is_closed())
        self.assertTrue(Curve(rectangle(4, 2)[:-1], closed=True).is_closed())
        self.assertTrue(
            Curve([(0, 0), (1, 0), (1, 1), (0, 0.0005)]).is_closed(1e-3)
        )

    def test_planar(self):
        flat = Curve([(0, 0, 5), (1, 0, 5), (1, 1, 5), (0, 0, 5)])
        tilted = Curve([(0, 0, 0), (1, 0, 1), (1, 1, 1), (0, 0, 0)])
        self.assertTrue(flat.is_planar())
        self.assertFalse(tilted.is_planar())

    def test_length(self):
        self.assertEqual(Curve(rectangle(4, 2)).length, 12.0)
        self.assertEqual(
            Curve(rectangle(4, 2)[:-1], closed=True).length, 12.0
        )

    def test_invalid(self):
        with self.assertRaises(ValueError):
            Curve([(0, 0)])
        with self.assertRaises(ValueError):
            Curve([(0, 0), (np.nan, 1)])
        with self.assertRaises(ValueError):
            Curve(rectangle(1, 1), degree=0)


class TestGeometryOperations(TestCase):

    def test_sample_count(self):
        self.assertEqual(sample_count(1000.0, 50, 1.0), 1000)
        self.assertEqual(sample_count(10.0, 50, 1.0), 50)
        self.assertEqual(sample_count(400.0, 8, 10.0), 40)

    def test_sample_is_restartable(self):
        s = sample(Curve(rectangle(100, 50)), min_points=8, spacing=10.0)
        first, second = list(s), list(s)
        self.assertEqual(len(first), 30)
        self.assertEqual(first, second)
        assert_allclose(s.as_array(), np.array(first))

    def test_sample_include_vertices(self):
        s = sample(Boundary([(0, 0), (10, 0), (10, 3), (0, 3)]),
                   min_points=4, spacing=100.0, include_vertices=True)
        points = s.as_array()
        for vertex in [(0, 0), (10, 0), (10, 3), (0, 3)]:
            self.assertTrue(
                np.any(np.all(np.isclose(points, vertex), axis=1)),
                f'Vertex {vertex} missing in the sample.'
            )

    def test_bounding_box(self):
        lo, hi = bounding_box([(1, 5), (-2, 3), (4, -1)])
        assert_allclose(lo, [-2, -1])
        assert_allclose(hi, [4, 5])
        with self.assertRaises(ValueError):
            bounding_box([])

    def test_box_contains(self):
        outer = (np.array([0.0, 0.0]), np.array([10.0, 10.0]))
        self.assertTrue(box_contains(outer, outer))
        inner = (np.array([0.0, 0.0]), np.array([10.0005, 5.0]))
        self.assertFalse(box_contains(outer, inner))
        self.assertTrue(box_contains(outer, inner, inflation=1e-3))

    def test_point_in_polygon(self):
        b = Boundary(rectangle(4, 2))
        self.assertIs(point_in_polygon((1, 1), b), Containment.INSIDE)
        self.assertIs(point_in_polygon((5, 1), b), Containment.OUTSIDE)
        self.assertIs(point_in_polygon((4, 1), b), Containment.ON_BOUNDARY)
        self.assertIs(
            point_in_polygon((4.0005, 1), b, 1e-3), Containment.ON_BOUNDARY
        )

    def test_surface_with_hollow(self):
        outline = Boundary(rectangle(100, 200))
        hollow = Boundary(rectangle(40, 80, 30, 60))
        surface = SurfaceBuilder(outline, [hollow])()
        self.assertEqual(len(surface.interiors), 1)
        assert_allclose(surface.area, 20000 - 3200)

    def test_surface_falls_apart(self):
        outline = Boundary(rectangle(100, 20))
        cut = Boundary(rectangle(20, 30, 40, -5))
        with self.assertRaises(SurfaceConstructionError):
            SurfaceBuilder(outline, [cut]).build()

    def test_surface_below_tolerance_grid(self):
        outline = Boundary(rectangle(4e-4, 4e-4))
        hollow = Boundary(rectangle(2e-4, 2e-4, 1e-4, 1e-4))
        with self.assertRaises(NoAreaError):
            SurfaceBuilder(outline, [hollow], tolerance=1e-3).build()

    def test_surface_timeout(self):
        release = threading.Event()
        outline = Boundary(rectangle(100, 200))
        try:
            with stalled_difference(release):
                with self.assertRaises(SurfaceTimeoutError):
                    SurfaceBuilder(outline, timeout=0.05).build()
        finally:
            release.set()
        surface = SurfaceBuilder(outline, timeout=5.0).build()
        assert_allclose(surface.area, 20000.0)

    def test_triangulate(self):
        outline = Boundary(rectangle(100, 200))
        hollow = Boundary(rectangle(40, 80, 30, 60))
        surface = SurfaceBuilder(outline, [hollow])()
        tri = triangulate(surface, 10.0)
        self.assertEqual(tri.shape[1:], (3, 2))
        e1, e2 = tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0]
        areas = 0.5 * np.abs(e1[:, 0] * e2[:, 1] - e1[:, 1] * e2[:, 0])
        assert_allclose(areas.sum(), surface.area)
        edges = np.linalg.norm(tri - np.roll(tri, 1, axis=1), axis=2)
        self.assertLessEqual(edges.max(), 10.0 * np.sqrt(2) + 1e-9)


class TestBoundaryValidator(TestCase):

    def setUp(self):
        self.validator = BoundaryValidator()
        self.outline = self.validator.validate_outline(
            Curve(rectangle(100, 100))
        ).unwrap()

    def test_outline_not_closed(self):
        result = self.validator.validate_outline(rectangle(10, 10)[:-1])
        self.assertIs(result.error, BoundaryError.NOT_CLOSED)
        with self.assertRaises(InputError):
            result.unwrap()

    def test_outline_not_planar(self):
        result = self.validator.validate_outline(
            [(0, 0, 0), (10, 0, 1), (10, 10, 2), (0, 10, 1), (0, 0, 0)]
        )
        self.assertIs(result.error, BoundaryError.NOT_PLANAR)

    def test_outline_degenerate(self):
        result = self.validator.validate_outline(
            [(0, 0), (5, 0), (10, 0), (0, 0)]
        )
        self.assertIs(result.error, BoundaryError.DEGENERATE)

    def test_outline_keeps_metadata(self):
        boundary = self.validator.validate_outline(
            Curve(rectangle(10, 10), degree=3, span_count=7), source_id='a'
        ).unwrap()
        self.assertEqual(
            (boundary.degree, boundary.span_count, boundary.source_id),
            (3, 7, 'a')
        )

    def test_hollow_inside(self):
        result = self.validator.validate_hollow(
            rectangle(20, 20, 40, 40), self.outline
        )
        self.assertTrue(result.ok)

    def test_hollow_bbox_exceeds(self):
        for high_accuracy in (False, True):
            result = self.validator.validate_hollow(
                rectangle(20, 20, 90, 40), self.outline,
                high_accuracy=high_accuracy
            )
            self.assertIs(
                result.error, BoundaryError.OUTSIDE_OUTLINE,
                f'A hollow larger than the outline box must be rejected '
                f'(high_accuracy={high_accuracy}).'
            )

    def test_hollow_centroid_outside(self):
        outline = self.validator.validate_outline(
            [(0, 0), (100, 0), (100, 20), (20, 20), (20, 100), (0, 100),
             (0, 0)]
        ).unwrap()
        result = self.validator.validate_hollow(
            rectangle(20, 20, 50, 50), outline
        )
        self.assertIs(result.error, BoundaryError.OUTSIDE_OUTLINE)

    def test_sampling_modes(self):
        outline = self.validator.validate_outline(
            [(0, 0), (100, 0), (100, 20), (20, 20), (20, 100), (0, 100),
             (0, 0)]
        ).unwrap()
        corner = rectangle(20, 20, 10, 10)
        self.assertTrue(
            self.validator.validate_hollow(
                corner, outline, high_accuracy=False
            ).ok,
            'Fast mode tolerates a single sampled point outside.'
        )
        self.assertIs(
            self.validator.validate_hollow(
                corner, outline, high_accuracy=True
            ).error,
            BoundaryError.OUTSIDE_OUTLINE
        )

    def test_coincident_hollows(self):
        hollow = rectangle(20, 20, 40, 40)
        accepted, rejected = self.validator.validate_hollows(
            [hollow, hollow], self.outline, ['h1', 'h2']
        )
        self.assertEqual([h.source_id for h in accepted], ['h1'])
        self.assertEqual(len(rejected), 1)
        self.assertIs(rejected[0].error,
                      BoundaryError.INTERSECTS_OTHER_HOLLOW)
        self.assertEqual(rejected[0].source_id, 'h2')

    def test_nested_and_crossing_hollows(self):
        outer = rectangle(60, 60, 20, 20)
        nested = rectangle(10, 10, 45, 45)
        crossing = rectangle(30, 10, 70, 45)
        separate = rectangle(5, 5, 5, 5)
        accepted, rejected = self.validator.validate_hollows(
            [outer, nested, crossing, separate], self.outline
        )
        self.assertEqual(len(accepted), 2)
        self.assertEqual(
            [r.error for r in rejected],
            [BoundaryError.INTERSECTS_OTHER_HOLLOW] * 2
        )


class TestSection(TestCase):

    def test_owns_boundaries(self):
        outline = Boundary(rectangle(10, 10))
        section = Section(outline)
        self.assertIsNot(section.outline, outline)
        self.assertFalse(section.outline.points.flags.writeable)

    def test_remove_outline(self):
        section = rectangle_section(100, 100,
                                    hollows=[rectangle(10, 10, 40, 40)])
        section.outline = None
        self.assertFalse(section.is_valid)
        self.assertEqual(section.hollows, ())

    def test_hollows_need_outline(self):
        with self.assertRaises(ValueError):
            Section(None, [Boundary(rectangle(1, 1))])


class TestRegionIntegrator(TestCase):

    def test_rectangle_direct(self):
        w, h = 100.0, 200.0
        res = RegionIntegrator().integrate(rectangle_section(w, h, 10, 20))
        self.assertEqual(res.method, 'direct')
        assert_allclose(res.area, w * h)
        assert_allclose(res.centroid, (60.0, 120.0))
        assert_allclose(res.ixx, w * h ** 3 / 12)
        assert_allclose(res.iyy, h * w ** 3 / 12)
        assert_allclose(res.ixy, 0.0, atol=1e-3)
        assert_allclose((res.x_max, res.y_max), (w / 2, h / 2))
        assert_allclose(res.outline_length, 600.0)

    def test_rectangle_mesh(self):
        w, h = 100.0, 200.0
        settings = Settings(integration='mesh', high_accuracy=True)
        res = RegionIntegrator(settings).integrate(rectangle_section(w, h))
        self.assertEqual(res.method, 'mesh')
        assert_allclose(res.area, w * h)
        assert_allclose(res.ixx, w * h ** 3 / 12, rtol=1e-3)
        assert_allclose(res.iyy, h * w ** 3 / 12, rtol=1e-3)
        assert_allclose(res.ixy, 0.0, atol=1e-3 * h * w ** 3 / 12)

    def test_rectangle_with_hollow(self):
        section = rectangle_section(100, 200,
                                    hollows=[rectangle(40, 80, 30, 60)])
        for method in ('direct', 'mesh'):
            settings = Settings(integration=method, high_accuracy=True)
            res = RegionIntegrator(settings).integrate(section)
            assert_allclose(res.area, 20000 - 3200)
            assert_allclose(res.centroid, (50.0, 100.0))
            assert_allclose(
                res.ixx, 100 * 200 ** 3 / 12 - 40 * 80 ** 3 / 12, rtol=1e-3
            )

    def test_hollow_refines_extreme_fibers(self):
        section = rectangle_section(100, 100,
                                    hollows=[rectangle(40, 40, 50, 50)])
        res = RegionIntegrator().integrate(section)
        cx, cy = res.centroid
        self.assertLess(cx, 50.0)
        assert_allclose(res.x_max, 100.0 - cx)
        assert_allclose(res.y_max, 100.0 - cy)

    def test_rotated_rectangle(self):
        alpha = pi / 6
        rot = np.array([[np.cos(alpha), -np.sin(alpha)],
                        [np.sin(alpha), np.cos(alpha)]])
        corners = np.array(rectangle(200, 100))[:-1] @ rot.T
        res = RegionIntegrator().integrate(Section(Boundary(corners)))
        i1, i2, theta = principal_moments(res.ixx, res.iyy, res.ixy)
        assert_allclose((i1, i2), (100 * 200 ** 3 / 12, 200 * 100 ** 3 / 12))
        # major axis along the long side, perpendicular to alpha
        assert_allclose(theta, alpha - pi / 2, atol=1e-8)

    def test_no_outline(self):
        with self.assertRaises(InputError):
            RegionIntegrator().integrate(Section())

    def test_no_area(self):
        section = Section(Boundary(rectangle(4e-4, 4e-4)),
                          [Boundary(rectangle(2e-4, 2e-4, 1e-4, 1e-4))])
        with self.assertRaises(NoAreaError):
            RegionIntegrator().integrate(section)

    def test_mesh_triangles_kept(self):
        section = rectangle_section(100, 200)
        direct = RegionIntegrator().integrate(section)
        self.assertIsNone(direct.triangles)
        mesh = RegionIntegrator(Settings(integration='mesh')).integrate(
            section
        )
        self.assertEqual(mesh.triangles.shape[1:], (3, 2))
        self.assertEqual(mesh, RegionIntegrator(
            Settings(integration='mesh')).integrate(section))

    def test_idempotent(self):
        section = rectangle_section(100, 200,
                                    hollows=[rectangle(40, 80, 30, 60)])
        integrator = RegionIntegrator()
        material = MaterialCatalog()['Steel']
        first = derive_properties(integrator.integrate(section), material)
        second = derive_properties(integrator.integrate(section), material)
        self.assertEqual(first, second)


class TestProperties(TestCase):

    def setUp(self):
        self.integral = RegionIntegrator().integrate(
            rectangle_section(100, 200)
        )

    def test_moduli(self):
        p = derive_properties(self.integral)
        assert_allclose(p.wx, 100 * 200 ** 2 / 6)
        assert_allclose(p.wy, 200 * 100 ** 2 / 6)
        assert_allclose(p.rx, 200 / np.sqrt(12))
        assert_allclose(p.ry, 100 / np.sqrt(12))
        assert_allclose(p.polar, p.ixx + p.iyy)

    def test_mass(self):
        p = derive_properties(self.integral, MaterialCatalog()['Steel'])
        assert_allclose(p.mass, 20000 * 1000 * 7.85e-6)
        assert_allclose(p.mass_moment_x, 7.85e-3 * p.ixx)
        self.assertEqual(p.warnings, ())

    def test_no_density(self):
        p = derive_properties(self.integral, MaterialCatalog().custom(0, 235))
        self.assertEqual(p.mass, 0.0)
        self.assertEqual(len(p.warnings), 1)

    def test_depth(self):
        with self.assertRaises(InputError):
            derive_properties(self.integral, depth=0.0)

    def test_principal_moments(self):
        i1, i2, theta = principal_moments(2.0, 8.0, 0.0)
        self.assertEqual((i1, i2), (8.0, 2.0))
        assert_allclose(theta, pi / 2)
        i1, i2, theta = principal_moments(5.0, 5.0, 3.0)
        assert_allclose((i1, i2), (8.0, 2.0))
        assert_allclose(theta, -pi / 4)


class TestUtilization(TestCase):

    def test_exactly_full(self):
        res = UtilizationCalculator().calculate(
            make_properties(wx=1000.0), LoadCase(mx=0.25, safety_factor=2.0),
            500.0
        )
        self.assertEqual(res.utilization, 100.0)
        self.assertTrue(res.critical)
        self.assertFalse(res.exceeds_capacity)

    def test_over_capacity(self):
        res = UtilizationCalculator().calculate(
            make_properties(wx=1000.0), LoadCase(mx=-0.5), 235.0
        )
        assert_allclose(res.sigma_x, 500.0)
        self.assertTrue(res.exceeds_capacity)

    def test_shear_and_torsion(self):
        p = make_properties(area=20000.0, x_max=50.0, y_max=100.0,
                            polar=2e5)
        res = UtilizationCalculator().calculate(
            p, LoadCase(qy=10.0, t=0.001), 235.0
        )
        assert_allclose(res.tau_qy, 0.75)
        assert_allclose(res.tau_t, 1000.0 * 100.0 / 2e5)
        assert_allclose(res.tau, np.hypot(0.75, 0.5))
        assert_allclose(res.sigma_v, np.sqrt(3) * res.tau)

    def test_no_utilization(self):
        calc = UtilizationCalculator()
        p = make_properties()
        self.assertIsNone(calc.calculate(p, LoadCase(), 235.0))
        self.assertIsNone(calc.calculate(p, None, 235.0))
        self.assertIsNone(calc.calculate(p, LoadCase(mx=1.0), None))


class TestInputs(TestCase):

    def test_catalog(self):
        catalog = MaterialCatalog()
        self.assertEqual(len(catalog), 5)
        self.assertEqual(catalog['steel'].yield_strength, 235.0)
        with self.assertRaises(InputError):
            _ = catalog['Unobtainium']
        with self.assertRaises(TypeError):
            catalog['Steel'] = None

    def test_custom_material(self):
        catalog = MaterialCatalog()
        m = catalog.custom('7,85', '235')
        self.assertEqual((m.name, m.density, m.yield_strength),
                         ('Custom', 7.85, 235.0))
        self.assertIsNone(catalog.custom(-1.0, 235.0).density)
        for density, fy in ((7.85, 0.0), ('abc', 235.0), (7.85, '')):
            with self.assertRaises(InputError):
                catalog.custom(density, fy)

    def test_load_case(self):
        lc = LoadCase.parse(mx='1,5', qx=' 2 ')
        self.assertEqual((lc.mx, lc.qx), (1.5, 2.0))
        self.assertTrue(lc.is_loaded)
        self.assertFalse(LoadCase().is_loaded)
        with self.assertRaises(InputError):
            LoadCase(safety_factor=0.0)
        with self.assertRaises(InputError):
            LoadCase(mx=float('nan'))
        with self.assertRaises(InputError):
            LoadCase.parse(n='1')

    def test_load_case_parse_errors(self):
        for values in ({'mx': 'abc'}, {'my': ''}, {'qx': 'inf'},
                       {'t': '-inf'}, {'safety_factor': 'nan'},
                       {'qy': True}, {'mx': None}):
            with self.assertRaises(InputError, msg=str(values)):
                LoadCase.parse(**values)

    def test_parse_number(self):
        self.assertEqual(parse_number(' 1,5e3 ', 'depth'), 1500.0)
        self.assertEqual(parse_number(2, 'depth'), 2.0)
        for value in ('abc', '', '1,5,0', 'inf', 'NaN', float('inf'),
                      float('nan'), True, None, [1.0]):
            with self.assertRaises(InputError, msg=repr(value)):
                parse_number(value, 'depth')

    def test_settings(self):
        self.assertEqual(Settings().tick_interval, 1.0)
        self.assertEqual(Settings(high_accuracy=True).tick_interval, 2.0)
        with self.assertRaises(ValueError):
            Settings(tolerance=0.0)
        with self.assertRaises(ValueError):
            Settings(integration='exact')


class TestResultTable(TestCase):

    def setUp(self):
        integral = RegionIntegrator().integrate(rectangle_section(100, 200))
        self.properties = derive_properties(integral,
                                            MaterialCatalog()['Steel'])
        self.utilization = UtilizationCalculator().calculate(
            self.properties, LoadCase(mx=10.0, qy=5.0), 235.0
        )

    def test_convert(self):
        self.assertEqual(convert(2.0e6, QuantityKind.AREA, 'm'), 2.0)
        self.assertEqual(convert(5.0, QuantityKind.STRESS, LengthUnit.M),
                         5.0)
        with self.assertRaises(InputError):
            LengthUnit.parse('inch')

    def test_unit_scaling(self):
        mm = ResultTable.from_results(self.properties, unit='mm')
        m = ResultTable.from_results(self.properties, unit='m')
        for label, k in (('Centroid X', 1), ('Area', 2), ('Wx', 3),
                         ('Ix', 4), ('ix', 1), ('Mass', 0),
                         ('Jx (mass)', 2)):
            assert_allclose(
                float(m[label].value),
                float(mm[label].value) * 0.001 ** k, rtol=1e-5,
                err_msg=f'{label} must scale with the power {k}.'
            )
        self.assertEqual(mm['Ix'].unit, 'mm⁴')
        self.assertEqual(m['Wx'].unit, 'm³')

    def test_rows(self):
        table = ResultTable.from_results(self.properties)
        self.assertEqual(table.rows[0].label, 'Area')
        self.assertEqual(table['Area'].value, '20000')
        self.assertNotIn('Utilization', [r.label for r in table])
        table = ResultTable.from_results(self.properties, self.utilization)
        self.assertEqual(table.rows[-1].label, 'Utilization')
        self.assertIn('Area', table.to_text())

    def test_csv_round_trip(self):
        table = ResultTable.from_results(self.properties, self.utilization,
                                         unit='cm', decimals=4)
        with tempfile.TemporaryDirectory() as tmp:
            path = table.to_csv(os.path.join(tmp, 'results.csv'))
            with open(path, encoding='utf-8') as f:
                self.assertEqual(f.readline().strip(), 'Property,Value,Unit')
            self.assertEqual(ResultTable.read_csv(path), table)

    def test_read_csv_header(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'bad.csv')
            with open(path, 'w', encoding='utf-8') as f:
                f.write('Name,Value\nArea,1\n')
            with self.assertRaises(InputError):
                ResultTable.read_csv(path)


class TestVisualization(TestCase):

    def test_bending_stress(self):
        p = make_properties(centroid_x=0.0, centroid_y=0.0, ixx=1e6,
                            iyy=1e6)
        points = [(0.0, 10.0), (0.0, -10.0), (10.0, 0.0)]
        assert_allclose(bending_stress(points, p, None), [0, 0, 0])
        assert_allclose(bending_stress(points, p, LoadCase(mx=1.0)),
                        [10.0, -10.0, 0.0])
        assert_allclose(bending_stress(points, p, LoadCase(my=1.0)),
                        [0.0, 0.0, 10.0])

    def test_artifacts(self):
        sink = RecordingSink()
        analysis = SectionAnalysis(sink=sink)
        analysis.assign_outline(rectangle(100, 200))
        analysis.set_load_case(LoadCase(mx=10.0))
        analysis.calculate()
        art = sink.current
        assert_allclose(art.centroid, (50.0, 100.0))
        assert_allclose(art.principal_moments,
                        (100 * 200 ** 3 / 12, 200 * 100 ** 3 / 12))
        e1 = art.triangles[:, 1] - art.triangles[:, 0]
        e2 = art.triangles[:, 2] - art.triangles[:, 0]
        area = 0.5 * np.abs(e1[:, 0] * e2[:, 1] - e1[:, 1] * e2[:, 0]).sum()
        assert_allclose(area, 20000.0)
        low, high = art.stress_range
        self.assertLess(low, 0.0)
        self.assertGreater(high, 0.0)
        self.assertLess(high, 10e6 / (100 * 200 ** 2 / 6))
        analysis.remove_outline()
        self.assertIsNone(sink.current)

    def test_no_artifacts_without_sink(self):
        analysis = SectionAnalysis()
        analysis.assign_outline(rectangle(100, 200))
        with mock.patch('ssection.core.postprocessing.visualization.'
                        'triangulate') as mesh:
            outcome = analysis.calculate()
        mesh.assert_not_called()
        self.assertIsNone(outcome.artifacts)

    def test_artifacts_reuse_mesh_integration(self):
        sink = RecordingSink()
        analysis = SectionAnalysis(Settings(integration='mesh'), sink=sink)
        analysis.assign_outline(rectangle(100, 200))
        with mock.patch('ssection.core.postprocessing.visualization.'
                        'triangulate') as mesh:
            outcome = analysis.calculate()
        mesh.assert_not_called()
        self.assertIs(sink.current, outcome.artifacts)
        e1 = sink.current.triangles[:, 1] - sink.current.triangles[:, 0]
        e2 = sink.current.triangles[:, 2] - sink.current.triangles[:, 0]
        area = 0.5 * np.abs(e1[:, 0] * e2[:, 1] - e1[:, 1] * e2[:, 0]).sum()
        assert_allclose(area, 20000.0)
        self.assertEqual(len(sink.current.stress),
                         len(sink.current.triangles))

    def test_matplotlib_sink(self):
        import matplotlib
        matplotlib.use('Agg')
        import matplotlib.pyplot as plt
        from ssection.core.postprocessing.renderer import MplSectionSink

        sink = MplSectionSink()
        try:
            analysis = SectionAnalysis(sink=sink)
            analysis.assign_outline(rectangle(100, 200))
            analysis.assign_hollows([rectangle(40, 80, 30, 60)])
            analysis.set_load_case(LoadCase(mx=10.0))
            analysis.calculate()
            self.assertIsNotNone(sink.artifacts)
            self.assertEqual(len(sink.figure.axes), 2)
            analysis.remove_outline()
            self.assertIsNone(sink.artifacts)
            self.assertEqual(len(sink.figure.axes), 1)
        finally:
            plt.close(sink.figure)


class TestSectionAnalysis(TestCase):

    def setUp(self):
        self.analysis = SectionAnalysis()
        self.analysis.assign_outline(rectangle(100, 200))

    def test_calculate(self):
        outcome = self.analysis.calculate()
        assert_allclose(outcome.properties.area, 20000.0)
        assert_allclose(outcome.properties.mass, 157.0)
        self.assertIsNone(outcome.utilization)
        self.assertIs(self.analysis.properties, outcome.properties)

    def test_missing_outline(self):
        analysis = SectionAnalysis()
        with self.assertRaises(InputError):
            analysis.calculate()
        with self.assertRaises(InputError):
            analysis.assign_hollows([rectangle(10, 10, 5, 5)])
        with self.assertRaises(InputError):
            analysis.table()

    def test_input_error_keeps_results(self):
        before = self.analysis.calculate().properties
        with self.assertRaises(InputError):
            self.analysis.assign_outline(rectangle(10, 10)[:-1])
        with self.assertRaises(InputError):
            self.analysis.set_custom_material('x', 235)
        with self.assertRaises(InputError):
            self.analysis.set_depth(-1)
        self.assertIs(self.analysis.properties, before)
        assert_allclose(self.analysis.section.outline.area, 20000.0)

    def test_depth(self):
        self.analysis.set_depth(' 2,5e3 ')
        self.assertEqual(self.analysis.depth, 2500.0)
        for depth in ('x', '', 'nan', 'inf', '0', -1.0, True):
            with self.assertRaises(InputError, msg=repr(depth)):
                self.analysis.set_depth(depth)
        self.assertEqual(self.analysis.depth, 2500.0)

    def test_surface_timeout_keeps_results(self):
        analysis = SectionAnalysis(Settings(surface_timeout=0.5))
        analysis.assign_outline(rectangle(100, 200))
        before = analysis.calculate().properties
        analysis.assign_outline(rectangle(100, 100))
        release = threading.Event()
        try:
            with stalled_difference(release):
                with self.assertRaises(SurfaceTimeoutError):
                    analysis.calculate()
        finally:
            release.set()
        self.assertIs(analysis.properties, before)

    def test_outdated_outcome_dropped(self):
        outcome = self.analysis.evaluate()
        self.analysis.assign_hollows([rectangle(40, 80, 30, 60)])
        self.assertFalse(self.analysis.apply(outcome))
        self.assertIsNone(self.analysis.properties)
        self.assertEqual(len(self.analysis.section.hollows), 1)

        outcome = self.analysis.evaluate()
        self.analysis.remove_outline()
        self.assertFalse(self.analysis.apply(outcome))
        self.assertIsNone(self.analysis.properties)
        self.assertFalse(self.analysis.section.is_valid)

    def test_generation(self):
        events = []
        self.analysis.subscribe(events.append)
        generation = self.analysis.generation
        self.analysis.assign_hollows([rectangle(40, 80, 30, 60)])
        self.assertTrue(self.analysis.apply(self.analysis.evaluate()))
        self.assertEqual(self.analysis.generation, generation + 2)
        self.assertFalse(self.analysis.remove_outline(generation))
        self.assertTrue(self.analysis.section.is_valid)
        self.assertTrue(self.analysis.remove_outline())
        self.assertEqual(events, ['changed', 'changed', 'removed'])
        self.analysis.unsubscribe(events.append)
        self.analysis.assign_outline(rectangle(10, 10))
        self.assertEqual(len(events), 3)

    def test_hollows(self):
        rejected = self.analysis.assign_hollows(
            [rectangle(40, 80, 30, 60), rectangle(40, 80, 30, 60),
             rectangle(20, 20, 90, 0)],
            source_ids=['a', 'b', 'c']
        )
        self.assertEqual([r.source_id for r in rejected], ['b', 'c'])
        assert_allclose(self.analysis.calculate().properties.area, 16800.0)

    def test_outline_change_drops_hollows(self):
        self.analysis.assign_hollows([rectangle(10, 10, 80, 150)])
        self.analysis.assign_outline(rectangle(50, 100))
        self.assertEqual(self.analysis.section.hollows, ())

    def test_remove_outline(self):
        self.analysis.calculate()
        self.analysis.remove_outline()
        self.assertIsNone(self.analysis.properties)
        self.assertFalse(self.analysis.section.is_valid)

    def test_utilization(self):
        self.analysis.set_material('Aluminum')
        self.analysis.set_load_case(LoadCase(mx=50.0, safety_factor=1.1))
        res = self.analysis.calculate().utilization
        sigma = 50e6 / (100 * 200 ** 2 / 6)
        assert_allclose(res.sigma_x, sigma)
        assert_allclose(res.utilization, sigma / (160.0 / 1.1) * 100)

    def test_custom_material_without_density(self):
        self.analysis.set_custom_material(-2.0, 235.0)
        p = self.analysis.calculate().properties
        self.assertEqual(p.mass, 0.0)
        self.assertTrue(p.warnings)

    def test_export(self):
        self.analysis.set_unit('cm')
        self.analysis.calculate()
        with tempfile.TemporaryDirectory() as tmp:
            path = self.analysis.export_csv(os.path.join(tmp, 'out.csv'))
            table = ResultTable.read_csv(path)
        self.assertEqual(table['Area'].value, '200')
        self.assertEqual(table['Area'].unit, 'cm²')


class TestChangeTracker(TestCase):

    def setUp(self):
        self.doc = CurveDocument()
        self.outline_id = self.doc.add(Curve(rectangle(100, 100)))
        self.hollow_id = self.doc.add(Curve(rectangle(20, 20, 40, 40)))
        self.analysis = SectionAnalysis()
        self.analysis.assign_outline(self.doc.get(self.outline_id),
                                     source_id=self.outline_id)
        self.analysis.assign_hollows([self.doc.get(self.hollow_id)],
                                     source_ids=[self.hollow_id])
        self.analysis.calculate()
        self.scheduler = ManualScheduler()
        self.tracker = ChangeTracker(self.analysis, self.doc,
                                     scheduler=self.scheduler)

    def tearDown(self):
        self.tracker.disable()

    def test_fingerprint(self):
        a = GeometryFingerprint.of(Curve(rectangle(10, 10)))
        self.assertEqual(a, GeometryFingerprint.of(Curve(rectangle(10, 10))))
        self.assertEqual(
            a, GeometryFingerprint.of(Curve(rectangle(10, 10, 1e-5)))
        )
        self.assertNotEqual(
            a, GeometryFingerprint.of(Curve(rectangle(10, 10, 0.5)))
        )
        self.assertNotEqual(
            a, GeometryFingerprint.of(Curve(rectangle(10, 10), degree=3))
        )

    def test_enable_needs_outline(self):
        tracker = ChangeTracker(SectionAnalysis(), self.doc,
                                scheduler=ManualScheduler())
        with self.assertRaises(TrackingError):
            tracker.enable()
        self.assertIs(tracker.state, TrackerState.IDLE)

    def test_no_change(self):
        self.tracker.enable()
        self.assertIs(self.tracker.state, TrackerState.WATCHING)
        self.assertEqual(self.scheduler.interval, 1.0)
        self.scheduler.fire()
        self.assertEqual(self.tracker.process_pending(), 0)

    def test_outline_changed(self):
        before = self.analysis.properties
        self.tracker.enable()
        self.doc.replace(self.outline_id, Curve(rectangle(200, 100)))
        self.assertEqual(self.scheduler.pokes, 1)
        self.scheduler.fire()
        self.assertIs(self.analysis.properties, before,
                      'Results are only published on the owning thread.')
        self.assertEqual(self.tracker.process_pending(), 1)
        assert_allclose(self.analysis.properties.area, 20000 - 400)
        self.assertIs(self.tracker.state, TrackerState.WATCHING)

    def test_hollow_deleted(self):
        self.tracker.enable()
        self.doc.delete(self.hollow_id)
        self.scheduler.fire()
        self.tracker.process_pending()
        assert_allclose(self.analysis.properties.area, 10000.0)
        self.assertEqual(self.analysis.section.hollows, ())

    def test_hollow_moved_outside(self):
        self.tracker.enable()
        self.doc.replace(self.hollow_id, Curve(rectangle(20, 20, 90, 40)))
        self.scheduler.fire()
        self.tracker.process_pending()
        assert_allclose(self.analysis.properties.area, 10000.0)

    def test_outline_deleted(self):
        self.tracker.enable()
        self.doc.delete(self.outline_id)
        self.scheduler.fire()
        self.assertIs(self.tracker.state, TrackerState.IDLE)
        self.tracker.process_pending()
        self.assertIsNone(self.analysis.properties)
        self.assertFalse(self.analysis.section.is_valid)

    def test_overlapping_tick_dropped(self):
        self.tracker.enable()
        self.doc.replace(self.outline_id, Curve(rectangle(200, 100)))
        with self.tracker._busy:
            self.scheduler.fire()
        self.assertEqual(self.tracker.dropped_ticks, 1)
        self.assertEqual(self.tracker.process_pending(), 0)
        self.scheduler.fire()
        self.assertEqual(self.tracker.process_pending(), 1)

    def test_fatal_error_disables(self):
        def broken(task):
            raise RuntimeError('host gone')

        tracker = ChangeTracker(self.analysis, self.doc,
                                scheduler=ManualScheduler(), dispatch=broken)
        tracker.enable()
        self.doc.replace(self.outline_id, Curve(rectangle(200, 100)))
        tracker.scheduler.fire()
        self.assertIs(tracker.state, TrackerState.IDLE)
        self.assertIsInstance(tracker.last_error, RuntimeError)

    def test_watching(self):
        with self.tracker.watching():
            self.assertTrue(self.scheduler.running)
        self.assertFalse(self.scheduler.running)
        self.assertIs(self.tracker.state, TrackerState.IDLE)

    def test_poll_scheduler(self):
        called = threading.Event()
        scheduler = PollScheduler()
        scheduler.start(10.0, called.set)
        try:
            scheduler.poke()
            self.assertTrue(called.wait(5.0))
        finally:
            scheduler.stop()
        self.assertFalse(scheduler.running)

    def test_owner_edits_survive_recompute(self):
        self.tracker.enable()
        other_id = self.doc.add(Curve(rectangle(10, 10, 10, 10)))
        self.analysis.assign_hollows([self.doc.get(other_id)],
                                     source_ids=[other_id])
        self.doc.replace(self.outline_id, Curve(rectangle(110, 100)))
        self.scheduler.fire()
        self.assertEqual(self.tracker.process_pending(), 1)
        hollows = self.analysis.section.hollows
        self.assertEqual([h.source_id for h in hollows], [other_id])
        assert_allclose(self.analysis.properties.area, 11000 - 100)

        self.doc.replace(other_id, Curve(rectangle(20, 10, 10, 10)))
        self.scheduler.fire()
        self.assertEqual(self.tracker.process_pending(), 1)
        assert_allclose(self.analysis.properties.area, 11000 - 200)

    def test_owner_removes_outline(self):
        self.tracker.enable()
        self.doc.replace(self.outline_id, Curve(rectangle(110, 100)))
        self.scheduler.fire()
        self.analysis.remove_outline()
        self.assertIs(self.tracker.state, TrackerState.IDLE)
        self.assertEqual(self.tracker.process_pending(), 1)
        self.assertFalse(self.analysis.section.is_valid)
        self.assertIsNone(self.analysis.properties)

    def test_outdated_recompute_repeated(self):
        self.tracker.enable()
        self.doc.replace(self.outline_id, Curve(rectangle(200, 100)))
        self.scheduler.fire()
        self.scheduler.fire()
        self.assertEqual(len(self.tracker.dispatch), 1)
        self.analysis.assign_hollows([rectangle(10, 10, 10, 10)])
        self.tracker.process_pending()
        assert_allclose(self.analysis.properties.area, 10000 - 400)
        self.scheduler.fire()
        self.assertEqual(self.tracker.process_pending(), 1)
        assert_allclose(self.analysis.properties.area, 20000 - 100)
        self.assertEqual(len(self.analysis.section.hollows), 1)

    def test_rejected_hollow_watched(self):
        self.tracker.enable()
        self.doc.replace(self.hollow_id, Curve(rectangle(20, 20, 90, 40)))
        self.scheduler.fire()
        self.tracker.process_pending()
        assert_allclose(self.analysis.properties.area, 10000.0)
        self.assertEqual(self.tracker.rejected, (self.hollow_id,))

        self.scheduler.fire()
        self.assertEqual(self.tracker.process_pending(), 0)
        pokes = self.scheduler.pokes
        self.doc.replace(self.hollow_id, Curve(rectangle(20, 20, 60, 40)))
        self.assertEqual(self.scheduler.pokes, pokes + 1)
        self.scheduler.fire()
        self.assertEqual(self.tracker.process_pending(), 1)
        assert_allclose(self.analysis.properties.area, 10000 - 400)
        self.assertEqual(self.tracker.rejected, ())
        self.assertEqual(
            [h.source_id for h in self.analysis.section.hollows],
            [self.hollow_id]
        )

    def test_rejected_hollow_fits_changed_outline(self):
        self.tracker.enable()
        self.doc.replace(self.hollow_id, Curve(rectangle(20, 20, 110, 40)))
        self.scheduler.fire()
        self.tracker.process_pending()
        self.assertEqual(self.tracker.rejected, (self.hollow_id,))
        self.doc.replace(self.outline_id, Curve(rectangle(200, 100)))
        self.scheduler.fire()
        self.tracker.process_pending()
        assert_allclose(self.analysis.properties.area, 20000 - 400)
        self.assertEqual(self.tracker.rejected, ())


class TestLoggerMixin(TestCase):

    def test_level_inherited(self):
        class Quiet(LoggerMixin):
            # noinspection PyMissingConstructor
            def __init__(self, debug=False):
                _ = debug

        logger = Quiet().logger
        self.assertEqual(logger.level, logging.NOTSET)
        self.assertTrue(all(isinstance(h, logging.NullHandler)
                            for h in logger.handlers))
        with self.assertLogs(Quiet.__module__, level='INFO') as cm:
            logger.info('Shown through the parent logger.')
            logger.debug('Hidden by the parent level.')
        self.assertEqual([r.name for r in cm.records], [logger.name])
