from itertools import islice

from fatigue_core import CHANNELS, FeatureWindower, SignalSimulator


def test_one_sample_per_channel_with_shared_timestamp():
    sim = SignalSimulator(sample_rate=10.0, seed=7)
    samples = sim.next_samples()
    assert [ch for ch, _, _ in samples] == list(CHANNELS)
    assert {t for _, _, t in samples} == {0.1}


def test_values_stay_within_profile_bounds():
    sim = SignalSimulator(channels=["HR"], fatigued=True, seed=3)
    values = [v for _, v, _ in islice(sim, 500)]
    assert all(45.0 <= v <= 100.0 for v in values)


def test_same_seed_same_stream():
    a = SignalSimulator(seed=11)
    b = SignalSimulator(seed=11)
    assert list(islice(a, 40)) == list(islice(b, 40))


def test_fills_a_window():
    sim = SignalSimulator(seed=1)
    windower = FeatureWindower(window_size=5)
    for _ in range(5):
        for channel, value, t in sim.next_samples():
            windower.append(channel, value, t)
    window = windower.try_extract_window()
    assert window is not None
    assert not window.degraded_channels
