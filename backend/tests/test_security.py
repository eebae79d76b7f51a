from snapit.security import hash_password, verify_password


def test_hash_is_salted_and_verifiable():
    first = hash_password('Secret123', iterations=1000)
    second = hash_password('Secret123', iterations=1000)
    assert first != second
    assert 'Secret123' not in first
    assert verify_password('Secret123', first)
    assert verify_password('Secret123', second)


def test_wrong_password_is_rejected():
    encoded = hash_password('Secret123', iterations=1000)
    assert not verify_password('secret123', encoded)
    assert not verify_password('', encoded)


def test_iterations_are_recorded_in_the_hash():
    encoded = hash_password('pw', iterations=1234)
    algorithm, iterations, salt, key = encoded.split('$')
    assert algorithm == 'pbkdf2_sha256'
    assert iterations == '1234'
    assert len(bytes.fromhex(salt)) == 16
    assert len(bytes.fromhex(key)) == 32


def test_malformed_hash_never_verifies():
    assert not verify_password('pw', 'not-a-hash')
    assert not verify_password('pw', 'md5$1$00$00')
