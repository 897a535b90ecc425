import unittest
import sys
import os

import numpy as np

# Add path to source
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from signstream.detectors import labels
from signstream.detectors.gesture_detectors import (
    StaticPoseClassifier, MotionHistory, check_orientation, compute_hand_pose,
    is_finger_extended, recognize_gesture, classify_frame,
)
from signstream.detectors.landmarks import InvalidHandShape, Landmark
import hand_fixtures as hf


class TestOrientation(unittest.TestCase):
    def test_upright_hand_points_up(self):
        self.assertEqual(check_orientation(hf.flat_hand()), labels.UP)

    def test_flipped_hand_points_down(self):
        self.assertEqual(check_orientation(hf.flip_vertical(hf.flat_hand())), labels.DOWN)

    def test_rotated_hand_points_side(self):
        self.assertEqual(check_orientation(hf.rotate(hf.flat_hand(), 90)), labels.SIDE)
        self.assertEqual(check_orientation(hf.rotate(hf.flat_hand(), -90)), labels.SIDE)

    def test_empty_input(self):
        self.assertEqual(check_orientation([]), labels.NONE)
        self.assertEqual(check_orientation(None), labels.NONE)

    def test_results_stay_in_orientation_vocabulary(self):
        for degrees in range(0, 360, 30):
            self.assertIn(check_orientation(hf.rotate(hf.flat_hand(), degrees)), labels.ORIENTATIONS)


class TestFingerExtension(unittest.TestCase):
    def test_flat_hand_all_extended(self):
        pose = compute_hand_pose(hf.flat_hand())
        self.assertTrue(all(pose.fingers_extended.values()))

    def test_fist_nothing_extended(self):
        pose = compute_hand_pose(hf.fist())
        self.assertFalse(any(pose.fingers_extended.values()))

    def test_unknown_finger_is_not_extended(self):
        hand = compute_hand_pose(hf.flat_hand()).landmarks
        self.assertFalse(is_finger_extended(hand, 'sixth'))

    def test_tip_distances(self):
        pose = compute_hand_pose(hf.flat_hand())
        self.assertAlmostEqual(pose.tip_distances['thumb_index'], 0.3, places=6)
        self.assertEqual(set(pose.tip_distances), {'thumb_index', 'thumb_middle', 'index_middle'})


class TestLetterTable(unittest.TestCase):
    """One classifier per test so no motion history leaks between cases."""

    def classify(self, hand):
        return StaticPoseClassifier().classify(hand)

    def test_fist_group(self):
        self.assertEqual(self.classify(hf.fist(hf.THUMB_UP)), 'A')
        self.assertEqual(self.classify(hf.fist(hf.THUMB_ON_INDEX_MCP)), 'T')
        self.assertEqual(self.classify(hf.fist(hf.THUMB_ON_MIDDLE_PIP)), 'N')
        self.assertEqual(self.classify(hf.fist(hf.THUMB_ON_RING_PIP)), 'M')
        self.assertEqual(self.classify(hf.fist(hf.THUMB_ON_INDEX_DIP)), 'S')
        self.assertEqual(self.classify(hf.fist(hf.THUMB_TUCKED)), 'E')

    def test_moving_thumb_to_index_knuckle_turns_s_into_t(self):
        self.assertEqual(self.classify(hf.fist(hf.THUMB_ON_INDEX_DIP)), 'S')
        self.assertEqual(self.classify(hf.fist(hf.THUMB_ON_INDEX_MCP)), 'T')

    def test_index_group(self):
        self.assertEqual(self.classify(hf.index_only()), 'D')
        self.assertEqual(self.classify(hf.index_only(hf.THUMB_UP)), 'L')
        self.assertEqual(self.classify(hf.rotate(hf.index_only(hf.THUMB_UP), 90)), 'G')
        self.assertEqual(self.classify(hf.rotate(hf.index_only(), 90)), 'G')
        self.assertEqual(self.classify(hf.flip_vertical(hf.index_only())), 'Z')
        self.assertEqual(self.classify(hf.index_only(index=hf.HOOKED_INDEX)), 'X')

    def test_q_never_fires(self):
        # thumb out and pointing down is caught by the L branch first
        hand = hf.flip_vertical(hf.index_only(hf.THUMB_UP))
        self.assertEqual(self.classify(hand), 'L')

    def test_two_finger_group(self):
        self.assertEqual(self.classify(hf.two_fingers()), 'V')
        self.assertEqual(self.classify(hf.two_fingers(middle=hf.MIDDLE_BESIDE_INDEX)), 'U')
        self.assertEqual(self.classify(hf.two_fingers(thumb_tip=(0.48, 0.50))), 'K')
        self.assertEqual(self.classify(hf.rotate(hf.two_fingers(), 90)), 'H')
        self.assertEqual(self.classify(hf.flip_vertical(hf.two_fingers())), 'P')

    def test_three_fingers(self):
        self.assertEqual(self.classify(hf.make_hand(True, True, True, False, hf.THUMB_TUCKED)), 'W')

    def test_pinky_group(self):
        self.assertEqual(self.classify(hf.y_hand()), 'Y')
        self.assertEqual(self.classify(hf.make_hand(False, False, False, True, hf.THUMB_TUCKED)), 'I')

    def test_f_with_index_curled(self):
        self.assertEqual(self.classify(hf.make_hand(False, True, True, True, hf.THUMB_TUCKED)), 'F')

    def test_f_shadows_o_on_open_hand(self):
        # thumb touching both index and middle tips, all four fingers up
        hand = hf.make_hand(True, True, True, True, thumb_tip=(0.47, 0.39))
        self.assertEqual(self.classify(hand), 'F')

    def test_o_outside_the_open_hand(self):
        hand = hf.make_hand(True, True, False, True, thumb_tip=(0.47, 0.39))
        self.assertEqual(self.classify(hand), 'O')

    def test_open_hand_b_and_c(self):
        self.assertEqual(self.classify(hf.flat_hand()), 'B')
        self.assertEqual(self.classify(hf.c_hand()), 'C')

    def test_unmatched_pattern_is_none(self):
        hand = hf.make_hand(True, False, False, True, hf.THUMB_TUCKED)
        self.assertEqual(self.classify(hand), labels.NONE)

    def test_output_is_always_in_vocabulary(self):
        hands = [hf.flat_hand(), hf.c_hand(), hf.fist(), hf.y_hand(), hf.index_only(),
                 hf.two_fingers(), hf.tap_hand(), hf.rotate(hf.fist(), 45)]
        for hand in hands:
            self.assertIn(self.classify(hand), labels.STATIC_GESTURES)


class TestInputs(unittest.TestCase):
    def test_empty_hand_returns_none_without_touching_history(self):
        classifier = StaticPoseClassifier()
        result = classifier.detect([])
        self.assertEqual(result.gesture_name, labels.NONE)
        self.assertEqual(result.metadata['reason'], 'no_hand')
        self.assertIsNone(classifier.motion_history.previous_wrist)

    def test_wrong_landmark_count_raises(self):
        with self.assertRaises(InvalidHandShape) as ctx:
            StaticPoseClassifier().classify(hf.flat_hand()[:20])
        self.assertEqual(ctx.exception.count, 20)

    def test_non_finite_coordinates_raise(self):
        hand = hf.flat_hand()
        hand[3][0] = float('nan')
        with self.assertRaises(InvalidHandShape):
            StaticPoseClassifier().classify(hand)

    def test_landmark_objects_and_arrays_accepted(self):
        objects = [Landmark(x, y, z) for x, y, z in hf.flat_hand()]
        self.assertEqual(StaticPoseClassifier().classify(objects), 'B')
        array_2d = np.array(hf.flat_hand())[:, :2]
        self.assertEqual(StaticPoseClassifier().classify(array_2d), 'B')

    def test_input_not_mutated(self):
        hand = hf.flat_hand()
        snapshot = [list(p) for p in hand]
        StaticPoseClassifier().classify(hand)
        self.assertEqual(hand, snapshot)

    def test_detect_metadata(self):
        result = StaticPoseClassifier().detect(hf.flat_hand())
        self.assertTrue(result.detected)
        self.assertEqual(result.metadata['reason'], 'open_flat')
        self.assertEqual(result.metadata['orientation'], labels.UP)

    def test_non_finite_read_only_array_rejected(self):
        hand = np.array(hf.flat_hand())
        hand[3, 0] = np.nan
        hand.flags.writeable = False
        with self.assertRaises(InvalidHandShape):
            StaticPoseClassifier().classify(hand)

    def test_same_hand_twice_gives_same_label(self):
        classifier = StaticPoseClassifier()
        for hand in (hf.flat_hand(), hf.fist(), hf.two_fingers(), hf.y_hand()):
            self.assertEqual(classifier.classify(hand), classifier.classify(hand))


class TestShake(unittest.TestCase):
    def bounce(self, count):
        base = hf.fist()
        return [hf.translate(base, dy=0.05 * (i % 2)) for i in range(count)]

    def test_shake_fires_once_then_clears(self):
        classifier = StaticPoseClassifier()
        results = [classifier.classify(h) for h in self.bounce(8)]

        # seven direction signs (six changes) are needed before the check passes
        self.assertNotIn(labels.SHAKE, results[:7])
        self.assertEqual(results[7], labels.SHAKE)
        self.assertEqual(len(classifier.motion_history), 0)

        next_label = classifier.classify(hf.translate(hf.fist(), dy=0.05))
        self.assertNotEqual(next_label, labels.SHAKE)

    def test_shake_precedes_letter_table(self):
        classifier = StaticPoseClassifier()
        results = [classifier.classify(hf.translate(hf.flat_hand(), dy=0.05 * (i % 2)))
                   for i in range(8)]
        self.assertEqual(results[7], labels.SHAKE)
        self.assertEqual(results[6], 'B')

    def test_small_jitter_is_ignored(self):
        classifier = StaticPoseClassifier()
        for i in range(20):
            label = classifier.classify(hf.translate(hf.fist(), dy=0.015 * (i % 2)))
            self.assertEqual(label, 'S')
        self.assertEqual(len(classifier.motion_history), 0)

    def test_previous_wrist_tracks_every_call(self):
        classifier = StaticPoseClassifier()
        for hand in self.bounce(8):
            classifier.classify(hand)
            self.assertAlmostEqual(classifier.motion_history.previous_wrist[1], hand[0][1])

    def test_reset(self):
        classifier = StaticPoseClassifier()
        for hand in self.bounce(5):
            classifier.classify(hand)
        classifier.reset()
        self.assertEqual(len(classifier.motion_history), 0)
        self.assertIsNone(classifier.motion_history.previous_wrist)

    def test_one_shot_helper_never_shakes(self):
        labels_seen = {recognize_gesture(h) for h in self.bounce(10)}
        self.assertEqual(labels_seen, {'S'})

    def test_shared_history_in_one_shot_helper(self):
        history = MotionHistory()
        results = [recognize_gesture(h, history) for h in self.bounce(8)]
        self.assertEqual(results[7], labels.SHAKE)


class TestClassifyFrame(unittest.TestCase):
    def test_one_label_per_hand(self):
        classifier = StaticPoseClassifier()
        self.assertEqual(classify_frame(classifier, [hf.flat_hand(), hf.y_hand()]), ['B', 'Y'])

    def test_empty_frame(self):
        self.assertEqual(classify_frame(StaticPoseClassifier(), []), [])
        self.assertEqual(classify_frame(StaticPoseClassifier(), None), [])

    def test_ndarray_frame(self):
        classifier = StaticPoseClassifier()
        frame = np.array([hf.flat_hand(), hf.y_hand()])
        self.assertEqual(classify_frame(classifier, frame), ['B', 'Y'])
        self.assertEqual(classify_frame(classifier, np.empty((0, 21, 3))), [])


if __name__ == '__main__':
    unittest.main()
