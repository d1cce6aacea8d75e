"""
Utils that can be useful for debugging.
"""


class RevealProtocol:
    """
    Two-phase reveal runner.

    Args:
        engine: :py:class:`engine.Engine` holding the handles
        kms: Decryption service, e.g. :py:class:`kms.ThresholdDecryptionService`
    """

    def __init__(self, engine, kms):
        self.engine = engine
        self.kms = kms

    def run(self, handles, receiver=None, context=None, verbose=True):
        """Request the reveal, decrypt, and finalize."""
        key = self.engine.request_reveal(handles, receiver, context)
        decrypted = self.kms.public_decrypt(self.engine, key.handles)
        result = self.engine.finalize(
            key, decrypted.clear_values, decrypted.decryption_proof
        )

        if verbose:
            print(
                "Finalized reveal of {0} handle(s) for {1}: {2}".format(
                    len(key), result.receiver, list(result.plaintexts)
                )
            )

        return result
