from fhereveal.utils.environment import MockEnvironment, make_mock_environment
